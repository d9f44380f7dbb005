"""Two-tier cache for the storefront catalog.

Provides a process-local memory tier in front of Redis:
- Domain-aware reads and writes with per-domain TTLs
- Bounded-timeout lookups that fall back to the catalog source
- Detached write-back so a slow cache never delays a response
- Pattern invalidation and cache warming
"""

from storefront.cache.keys import CacheKeys
from storefront.cache.local import LocalMemoryTier, LocalTiers
from storefront.cache.policy import CacheDomain, TtlPolicy
from storefront.cache.read_through import CachedReader, ReadResult
from storefront.cache.redis import CacheEntry, RedisStore, close_redis, get_redis
from storefront.cache.service import CacheService
from storefront.cache.warmer import CacheWarmer, WarmingReport, WarmPlan

__all__ = [
    # Store
    "CacheEntry",
    "RedisStore",
    "get_redis",
    "close_redis",
    # Keys and policy
    "CacheDomain",
    "CacheKeys",
    "TtlPolicy",
    # Service and tiers
    "CacheService",
    "CachedReader",
    "ReadResult",
    "LocalMemoryTier",
    "LocalTiers",
    # Warming
    "CacheWarmer",
    "WarmPlan",
    "WarmingReport",
]
