"""Catalog source of record.

:class:`CatalogSource` is what the cache layer needs from the database.
:class:`SqlCatalogSource` implements it over the SQLAlchemy async ORM and
wraps driver failures in :class:`~storefront.errors.CatalogSourceError`.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Protocol, TypeVar, runtime_checkable

from sqlalchemy import Select, func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.catalog.query import ProductListQuery, SortField, SortOrder
from storefront.catalog.schemas import (
    Category,
    CategoryOption,
    Pagination,
    Product,
    ProductListPage,
    Rating,
)
from storefront.catalog.shaping import (
    shape_category,
    shape_category_option,
    shape_product,
    shape_rating,
)
from storefront.errors import CatalogSourceError
from storefront.persistence.tables import CategoryTable, ProductTable, RatingTable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@runtime_checkable
class CatalogSource(Protocol):
    """Read access to the catalog source of record."""

    async def fetch_product_page(self, query: ProductListQuery) -> ProductListPage: ...

    async def get_product(self, slug: str) -> Product | None: ...

    async def list_products(self) -> list[Product]: ...

    async def list_categories(self, with_images: bool = True) -> list[Category]: ...

    async def list_category_options(self) -> list[CategoryOption]: ...

    async def list_category_slugs(self) -> list[str]: ...

    async def list_ratings(self, product_slug: str | None = None) -> list[Rating]: ...

    async def ping(self) -> bool: ...


def listing_order(query: ProductListQuery) -> list[object]:
    """ORDER BY clauses for a listing query.

    Price and name follow the requested direction, the default sort is
    newest first. Slug breaks ties so pages never overlap.
    """
    if query.sort_by is SortField.PRICE:
        column = ProductTable.price
    elif query.sort_by is SortField.NAME:
        column = ProductTable.name
    else:
        return [ProductTable.created_at.desc(), ProductTable.slug.asc()]
    primary = column.asc() if query.sort_order is SortOrder.ASC else column.desc()
    return [primary, ProductTable.slug.asc()]


def listing_filter(
    stmt: Select[tuple[ProductTable]], query: ProductListQuery
) -> Select[tuple[ProductTable]]:
    if query.featured:
        stmt = stmt.where(ProductTable.is_featured.is_(True))
    if not query.all_categories:
        stmt = stmt.where(ProductTable.category_slug == query.category)
    return stmt


class SqlCatalogSource:
    """Catalog source backed by PostgreSQL."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_factory() as session:
                return await work(session)
        except SQLAlchemyError as e:
            logger.error(f"Catalog source {operation} failed: {e}")
            raise CatalogSourceError(operation, str(e)) from e

    async def fetch_product_page(self, query: ProductListQuery) -> ProductListPage:
        async def work(session: AsyncSession) -> ProductListPage:
            filtered = listing_filter(select(ProductTable), query)
            total = await session.scalar(
                select(func.count()).select_from(filtered.order_by(None).subquery())
            )
            rows = await session.scalars(
                filtered.order_by(*listing_order(query)).offset(query.offset).limit(query.limit)
            )
            return ProductListPage(
                products=[shape_product(row) for row in rows],
                pagination=Pagination.build(query.page, query.limit, int(total or 0)),
            )

        return await self._run("fetch_product_page", work)

    async def get_product(self, slug: str) -> Product | None:
        async def work(session: AsyncSession) -> Product | None:
            row = await session.scalar(select(ProductTable).where(ProductTable.slug == slug))
            return shape_product(row) if row is not None else None

        return await self._run("get_product", work)

    async def list_products(self) -> list[Product]:
        async def work(session: AsyncSession) -> list[Product]:
            rows = await session.scalars(
                select(ProductTable).order_by(ProductTable.created_at.desc())
            )
            return [shape_product(row) for row in rows]

        return await self._run("list_products", work)

    async def list_categories(self, with_images: bool = True) -> list[Category]:
        """Displayed categories by name, optionally without their images."""

        async def work(session: AsyncSession) -> list[Category]:
            rows = await session.scalars(
                select(CategoryTable)
                .where(CategoryTable.display.is_(True))
                .order_by(CategoryTable.name.asc())
            )
            categories = [shape_category(row) for row in rows]
            if not with_images:
                for category in categories:
                    category.images = []
            return categories

        return await self._run("list_categories", work)

    async def list_category_options(self) -> list[CategoryOption]:
        async def work(session: AsyncSession) -> list[CategoryOption]:
            rows = await session.scalars(
                select(CategoryTable)
                .where(CategoryTable.display.is_(True))
                .order_by(CategoryTable.name.asc())
            )
            return [shape_category_option(row) for row in rows]

        return await self._run("list_category_options", work)

    async def list_category_slugs(self) -> list[str]:
        async def work(session: AsyncSession) -> list[str]:
            slugs = await session.scalars(
                select(CategoryTable.slug)
                .where(CategoryTable.display.is_(True))
                .order_by(CategoryTable.slug.asc())
            )
            return list(slugs)

        return await self._run("list_category_slugs", work)

    async def list_ratings(self, product_slug: str | None = None) -> list[Rating]:
        """Ratings newest first, for every product or just one."""

        async def work(session: AsyncSession) -> list[Rating]:
            stmt = select(RatingTable).order_by(RatingTable.created_at.desc())
            if product_slug:
                stmt = stmt.where(RatingTable.product_slug == product_slug)
            rows = await session.scalars(stmt)
            return [shape_rating(row) for row in rows]

        return await self._run("list_ratings", work)

    async def ping(self) -> bool:
        async def work(session: AsyncSession) -> bool:
            await session.execute(text("SELECT 1"))
            return True

        return await self._run("ping", work)
