"""Domain-aware cache operations.

The service turns (domain, key parts) into keys, applies the TTL policy on
every write, validates catalog values against their schemas and converts
store failures into misses. Callers never see a Redis exception from here.
"""

from __future__ import annotations

import logging
import time
from typing import Any

from pydantic import ValidationError

from storefront.cache.keys import CacheKeys
from storefront.cache.policy import USER_DOMAINS, CacheDomain, TtlPolicy
from storefront.cache.redis import MISS, TTL_MISSING, CacheEntry, RedisStore
from storefront.cache.values import dump_value, load_value
from storefront.config import settings
from storefront.observability.metrics import record_cache_operation, record_write_failure

logger = logging.getLogger(__name__)


class CacheService:
    """Read, write and invalidate cached values by domain."""

    def __init__(
        self,
        store: RedisStore,
        policy: TtlPolicy | None = None,
        stale_fraction: float | None = None,
    ):
        self.store = store
        self.policy = policy or TtlPolicy(settings.cache_ttl_overrides)
        self.stale_fraction = (
            settings.cache_stale_fraction if stale_fraction is None else stale_fraction
        )

    @staticmethod
    def key(domain: CacheDomain, *key_parts: object) -> str:
        return CacheKeys.build(domain, *key_parts)

    def _load(self, domain: CacheDomain, key: str, payload: Any) -> Any | None:
        try:
            return load_value(domain, payload)
        except ValidationError as e:
            logger.warning(f"Discarding invalid cached value for {key}: {e.error_count()} errors")
            return None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get(self, domain: CacheDomain, *key_parts: object) -> Any | None:
        """Cached value for a key, or None on a miss or store failure."""
        key = self.key(domain, *key_parts)
        start = time.perf_counter()
        try:
            payload = await self.store.get(key)
        except Exception as e:
            logger.warning(f"Cache get failed for {key}: {e}")
            return None
        finally:
            record_cache_operation("get", time.perf_counter() - start)

        if payload is None:
            return None
        return self._load(domain, key, payload)

    async def get_with_ttl(self, domain: CacheDomain, *key_parts: object) -> CacheEntry:
        """Cached value with its remaining TTL and staleness.

        An entry is stale once its remaining TTL drops below
        ``stale_fraction`` of the domain TTL.
        """
        key = self.key(domain, *key_parts)
        stale_below = self.policy.stale_threshold(domain, self.stale_fraction)
        start = time.perf_counter()
        try:
            entry = await self.store.get_with_ttl(key, stale_below=stale_below)
        except Exception as e:
            logger.warning(f"Cache get_with_ttl failed for {key}: {e}")
            return MISS
        finally:
            record_cache_operation("get_with_ttl", time.perf_counter() - start)

        if not entry.hit:
            return MISS
        value = self._load(domain, key, entry.value)
        if value is None:
            return MISS
        return CacheEntry(value=value, ttl=entry.ttl, is_stale=entry.is_stale)

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def set(self, domain: CacheDomain, value: Any, *key_parts: object) -> bool:
        """Store a value under the domain's TTL.

        Returns False (and logs) if the value is None, fails validation or
        the store rejects the write.
        """
        key = self.key(domain, *key_parts)
        if value is None:
            logger.warning(f"Refusing to cache None for {key}")
            return False

        try:
            payload = dump_value(domain, value)
        except ValidationError as e:
            logger.warning(f"Refusing to cache invalid value for {key}: {e.error_count()} errors")
            record_write_failure(domain.value)
            return False

        start = time.perf_counter()
        try:
            return await self.store.set(key, payload, self.policy.ttl_for(domain))
        except Exception as e:
            logger.warning(f"Cache set failed for {key}: {e}")
            record_write_failure(domain.value)
            return False
        finally:
            record_cache_operation("set", time.perf_counter() - start)

    async def delete(self, domain: CacheDomain, *key_parts: object) -> bool:
        key = self.key(domain, *key_parts)
        return await self._delete_key(key)

    async def _delete_key(self, key: str) -> bool:
        start = time.perf_counter()
        try:
            return await self.store.delete(key)
        except Exception as e:
            logger.warning(f"Cache delete failed for {key}: {e}")
            return False
        finally:
            record_cache_operation("delete", time.perf_counter() - start)

    async def delete_pattern(self, pattern: str) -> bool:
        """Delete every key matching a glob. No matches is still a success."""
        start = time.perf_counter()
        try:
            deleted = await self.store.delete_pattern(pattern)
        except Exception as e:
            logger.warning(f"Cache delete_pattern failed for {pattern}: {e}")
            return False
        finally:
            record_cache_operation("delete_pattern", time.perf_counter() - start)

        logger.debug(f"Deleted {deleted} keys matching {pattern}")
        return True

    # -------------------------------------------------------------------------
    # Invalidation
    # -------------------------------------------------------------------------

    async def invalidate_product(self, slug: str) -> bool:
        """Drop a product and every listing page that may contain it."""
        single = await self.delete(CacheDomain.PRODUCT, slug)
        listings = await self.delete_pattern(CacheKeys.domain_pattern(CacheDomain.PRODUCT_LIST))
        return single and listings

    async def invalidate_categories(self) -> bool:
        listed = await self.delete(CacheDomain.CATEGORY_LIST)
        options = await self.delete(CacheDomain.CATEGORY_OPTIONS)
        return listed and options

    async def invalidate_ratings(self, product_slug: str | None = None) -> bool:
        """Drop the all-ratings key and, if given, one product's ratings."""
        results = [await self.delete(CacheDomain.RATINGS, *CacheKeys.ratings_parts())]
        if product_slug:
            results.append(
                await self.delete(CacheDomain.RATINGS, *CacheKeys.ratings_parts(product_slug))
            )
        return all(results)

    async def clear_user(self, user_id: str) -> bool:
        """Delete all cached data for a user.

        Succeeds if at least one of the deletions succeeded.
        """
        results = []
        for target in CacheKeys.user_patterns(user_id):
            if "*" in target:
                results.append(await self.delete_pattern(target))
            else:
                results.append(await self._delete_key(target))
        return any(results)

    async def stats_for_user(self, user_id: str) -> dict[str, dict[str, Any]]:
        """Existence and remaining TTL of each single-key user domain.

        Orders and order details are keyed per filter/order, so they are
        not listed here.
        """
        stats: dict[str, dict[str, Any]] = {}
        for domain in USER_DOMAINS:
            if domain in (CacheDomain.ORDERS, CacheDomain.ORDER_DETAILS):
                continue
            key = CacheKeys.user_key(domain, user_id)
            try:
                ttl = await self.store.ttl(key)
            except Exception as e:
                logger.warning(f"Cache ttl failed for {key}: {e}")
                stats[domain.value] = {"exists": False, "ttl": None}
                continue
            exists = ttl != TTL_MISSING
            stats[domain.value] = {"exists": exists, "ttl": ttl if exists else None}
        return stats
