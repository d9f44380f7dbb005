"""Cache warming.

Populates Redis ahead of traffic, typically right after a deployment:

- category options and the full category list
- every product under ``product:<slug>``
- all ratings plus per-product ratings
- listing pages for every page size x sort x category x featured
  combination, paging until a short page

Dimensions run concurrently and fail independently; a failure is recorded
in the :class:`WarmingReport` and the rest of the run carries on. All writes
go through :class:`~storefront.cache.service.CacheService`, so warmed keys
get exactly the TTLs the request path would give them.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable, Iterator
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import product as cartesian
from typing import Any
from uuid import uuid4

from storefront.cache.concurrency import gather_in_chunks
from storefront.cache.keys import CacheKeys
from storefront.cache.policy import CacheDomain
from storefront.cache.service import CacheService
from storefront.catalog.query import ALL_CATEGORIES, ProductListQuery, SortField, SortOrder
from storefront.catalog.schemas import Product, Rating
from storefront.catalog.source import CatalogSource
from storefront.config import settings
from storefront.errors import WarmAbortedError
from storefront.observability.logging import LogContext
from storefront.observability.metrics import record_warm_run

logger = logging.getLogger(__name__)

SORT_COMBINATIONS: tuple[tuple[SortField, SortOrder], ...] = (
    (SortField.DEFAULT, SortOrder.DESC),
    (SortField.PRICE, SortOrder.ASC),
    (SortField.PRICE, SortOrder.DESC),
    (SortField.NAME, SortOrder.ASC),
    (SortField.NAME, SortOrder.DESC),
)


@dataclass(frozen=True)
class WarmPlan:
    """Axes and limits of a warm run."""

    page_sizes: tuple[int, ...] = (4, 12)
    sort_combinations: tuple[tuple[SortField, SortOrder], ...] = SORT_COMBINATIONS
    featured_flags: tuple[bool, ...] = (False, True)
    max_pages: int = 10
    concurrency: int = 20
    preview_keys: int = 50

    @classmethod
    def from_settings(cls) -> WarmPlan:
        return cls(
            page_sizes=tuple(settings.warm_page_sizes),
            featured_flags=tuple(settings.warm_featured_flags),
            max_pages=settings.warm_max_pages_per_combination,
            concurrency=settings.warm_concurrency,
            preview_keys=settings.warm_preview_keys,
        )

    def combinations(self, categories: list[str]) -> Iterator[ProductListQuery]:
        """First-page queries for every listing combination."""
        for limit, (sort_by, sort_order), category, featured in cartesian(
            self.page_sizes, self.sort_combinations, categories, self.featured_flags
        ):
            yield ProductListQuery(
                limit=limit,
                page=1,
                category=category,
                featured=featured,
                sort_by=sort_by,
                sort_order=sort_order,
            )


@dataclass
class WarmingReport:
    """Outcome of one warm run. Never persisted."""

    run_id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    keys: list[str] = field(default_factory=list)
    dimension_errors: list[str] = field(default_factory=list)
    failures: dict[str, list[str]] = field(default_factory=dict)
    error_dimensions: list[str] = field(default_factory=list)
    duration_ms: float = 0.0
    preview_limit: int = 50

    @property
    def warmed(self) -> int:
        return len(self.keys)

    @property
    def keys_preview(self) -> list[str]:
        return self.keys[: self.preview_limit]

    def add_key(self, key: str) -> None:
        self.keys.append(key)

    def add_error(self, dimension: str, error: object) -> None:
        """A whole dimension failed."""
        self.dimension_errors.append(f"{dimension}: {error}")
        self.error_dimensions.append(dimension)

    def add_failure(self, dimension: str, detail: str) -> None:
        """One key or item of a dimension failed."""
        self.failures.setdefault(dimension, []).append(detail)
        self.error_dimensions.append(dimension)

    @property
    def failure_count(self) -> int:
        return len(self.dimension_errors) + sum(len(items) for items in self.failures.values())

    @property
    def errors(self) -> list[str]:
        """One line per failed dimension; item failures are summarised."""
        errors = list(self.dimension_errors)
        for dimension, items in self.failures.items():
            if len(items) == 1:
                errors.append(f"{dimension}: {items[0]}")
            else:
                errors.append(f"{dimension}: {len(items)} failed (first: {items[0]})")
        return errors

    @property
    def status_code(self) -> int:
        """200 clean, 207 partial, 500 when nothing was warmed."""
        if not self.errors:
            return 200
        if self.warmed > 0:
            return 207
        return 500

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.status_code != 500,
            "message": "Cache warming completed",
            "run_id": self.run_id,
            "timestamp": self.timestamp.isoformat(),
            "warmed": self.warmed,
            "keys_preview": self.keys_preview,
            "errors": self.errors,
            "error_count": self.failure_count,
            "duration_ms": round(self.duration_ms, 1),
        }


class CacheWarmer:
    """Runs warm passes against one cache service and catalog source."""

    def __init__(
        self,
        cache: CacheService,
        source: CatalogSource,
        plan: WarmPlan | None = None,
    ):
        self.cache = cache
        self.source = source
        self.plan = plan or WarmPlan.from_settings()

    async def run(self) -> WarmingReport:
        """Run one full warm pass.

        Raises:
            WarmAbortedError: if the catalog source is unreachable at start
        """
        report = WarmingReport(preview_limit=self.plan.preview_keys)
        start = time.perf_counter()

        with LogContext(warm_run_id=report.run_id):
            await self._preflight()
            logger.info("Cache warming started")

            await asyncio.gather(
                self._dimension(report, "category options", self._warm_category_options),
                self._dimension(report, "full categories", self._warm_category_list),
                self._dimension(report, "ratings", self._warm_ratings),
                self._dimension(report, "individual products", self._warm_products),
                self._dimension(report, "product listings", self._warm_listings),
            )

            report.duration_ms = (time.perf_counter() - start) * 1000
            record_warm_run(report.warmed, report.error_dimensions)
            logger.info(
                f"Cache warming finished: {report.warmed} keys, {report.failure_count} errors "
                f"in {report.duration_ms:.0f}ms (status {report.status_code})"
            )
        return report

    async def _preflight(self) -> None:
        try:
            reachable = await self.source.ping()
        except Exception as e:
            logger.error(f"Cache warming aborted, catalog source unreachable: {e}")
            raise WarmAbortedError(f"Catalog source unreachable: {e}") from e
        if not reachable:
            logger.error("Cache warming aborted, catalog source did not answer ping")
            raise WarmAbortedError("Catalog source unreachable")

    async def _dimension(
        self,
        report: WarmingReport,
        dimension: str,
        work: Callable[[WarmingReport], Awaitable[None]],
    ) -> None:
        try:
            await work(report)
        except Exception as e:
            logger.warning(f"Warming {dimension} failed: {e}")
            report.add_error(dimension, e)

    async def _write(
        self,
        report: WarmingReport,
        dimension: str,
        domain: CacheDomain,
        value: Any,
        *key_parts: object,
    ) -> bool:
        key = CacheKeys.build(domain, *key_parts)
        if await self.cache.set(domain, value, *key_parts):
            report.add_key(key)
            return True
        report.add_failure(dimension, f"failed to cache {key}")
        return False

    # -------------------------------------------------------------------------
    # Dimensions
    # -------------------------------------------------------------------------

    async def _warm_category_options(self, report: WarmingReport) -> None:
        options = await self.source.list_category_options()
        await self._write(report, "category options", CacheDomain.CATEGORY_OPTIONS, options)

    async def _warm_category_list(self, report: WarmingReport) -> None:
        categories = await self.source.list_categories(with_images=True)
        await self._write(report, "full categories", CacheDomain.CATEGORY_LIST, categories)

    async def _warm_products(self, report: WarmingReport) -> None:
        products = await self.source.list_products()

        async def warm_one(product: Product) -> bool:
            return await self._write(
                report, "individual products", CacheDomain.PRODUCT, product, product.slug
            )

        results = await gather_in_chunks(products, warm_one, self.plan.concurrency)
        for product, result in zip(products, results):
            if isinstance(result, BaseException):
                report.add_failure("individual products", f"{product.slug}: {result}")

    async def _warm_ratings(self, report: WarmingReport) -> None:
        ratings = await self.source.list_ratings()
        await self._write(
            report, "ratings", CacheDomain.RATINGS, ratings, *CacheKeys.ratings_parts()
        )

        by_product: dict[str, list[Rating]] = {}
        for rating in ratings:
            if not rating.product_slug:
                logger.warning(f"Rating {rating.id} has no product, skipping per-product cache")
                continue
            by_product.setdefault(rating.product_slug, []).append(rating)

        async def warm_one(item: tuple[str, list[Rating]]) -> bool:
            slug, product_ratings = item
            return await self._write(
                report,
                "ratings",
                CacheDomain.RATINGS,
                product_ratings,
                *CacheKeys.ratings_parts(slug),
            )

        entries = list(by_product.items())
        results = await gather_in_chunks(entries, warm_one, self.plan.concurrency)
        for (slug, _), result in zip(entries, results):
            if isinstance(result, BaseException):
                report.add_failure("ratings", f"{slug}: {result}")

    async def _warm_listings(self, report: WarmingReport) -> None:
        categories = [ALL_CATEGORIES]
        try:
            categories.extend(await self.source.list_category_slugs())
        except Exception as e:
            logger.warning(f"Could not list categories for listing warm-up: {e}")
            report.add_error("categories fetch", e)

        queries = list(self.plan.combinations(categories))
        results = await gather_in_chunks(
            queries, lambda query: self._warm_combination(report, query), self.plan.concurrency
        )
        for query, result in zip(queries, results):
            if isinstance(result, BaseException):
                key = CacheKeys.product_list(query)
                logger.warning(f"Warming listing {key} failed: {result}")
                report.add_failure("products combo", f"{key}: {result}")

    async def _warm_combination(self, report: WarmingReport, first: ProductListQuery) -> None:
        """Warm consecutive pages of one combination until a short page."""
        for page in range(1, self.plan.max_pages + 1):
            query = first.with_page(page)
            try:
                result = await self.source.fetch_product_page(query)
            except Exception as e:
                key = CacheKeys.product_list(query)
                logger.warning(f"Warming listing {key} failed: {e}")
                report.add_failure("products combo", f"{key}: {e}")
                return
            await self._write(
                report, "products combo", CacheDomain.PRODUCT_LIST, result, *query.key_parts()
            )
            if len(result.products) < query.limit:
                return
        logger.info(
            f"Stopped warming {CacheKeys.product_list(first)} at the "
            f"{self.plan.max_pages}-page cap"
        )
