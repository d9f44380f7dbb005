"""Tiered reads: local memory, then Redis, then the catalog source.

The Redis lookup is bounded by ``CACHE_LOOKUP_TIMEOUT``; a slow store is
treated as a miss. On a miss the loaded value is returned at once and the
cache write happens in a detached task, so a slow or failing write never
delays or changes the response.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Literal

from storefront.cache.concurrency import DetachedTasks, bounded
from storefront.cache.local import LocalMemoryTier
from storefront.cache.policy import CacheDomain
from storefront.cache.redis import MISS, CacheEntry
from storefront.cache.service import CacheService
from storefront.config import settings
from storefront.observability.metrics import (
    record_cache_hit,
    record_cache_miss,
    record_lookup_timeout,
)

logger = logging.getLogger(__name__)

Loader = Callable[[], Awaitable[Any]]


class CacheStatus(str, Enum):
    HIT = "HIT"
    MISS = "MISS"
    STALE = "STALE"


class DataSource(str, Enum):
    MEMORY_CACHE = "MEMORY_CACHE"
    REDIS_CACHE = "REDIS_CACHE"
    DATABASE = "DATABASE"


class WriteBack(str, Enum):
    ASYNC = "ASYNC"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class LookupOutcome(str, Enum):
    """How the Redis lookup ended."""

    HIT = "hit"
    MISS = "miss"
    TIMEOUT = "timeout"
    ERROR = "error"


@dataclass(frozen=True)
class ReadResult:
    """A value plus where it came from."""

    value: Any
    key: str
    cache_status: CacheStatus
    data_source: DataSource
    cache_set: WriteBack | None = None

    @property
    def found(self) -> bool:
        return self.value is not None

    def headers(self, cache_control: str | None = None) -> dict[str, str]:
        """Diagnostic response headers."""
        headers = {
            "X-Cache-Status": self.cache_status.value,
            "X-Cache-Key": self.key,
            "X-Data-Source": self.data_source.value,
        }
        if self.cache_set is not None:
            headers["X-Cache-Set"] = self.cache_set.value
        if cache_control:
            headers["Cache-Control"] = cache_control
        return headers


class CachedReader:
    """Read-through access to one cache service."""

    def __init__(
        self,
        cache: CacheService,
        tasks: DetachedTasks,
        lookup_timeout: float | None = None,
        refresh_stale: bool = True,
    ):
        self.cache = cache
        self.tasks = tasks
        self.lookup_timeout = (
            settings.cache_lookup_timeout if lookup_timeout is None else lookup_timeout
        )
        self.refresh_stale = refresh_stale
        # At most one refresh in flight per key
        self._refreshing: dict[str, asyncio.Task[None]] = {}

    async def lookup(
        self, domain: CacheDomain, *key_parts: object
    ) -> tuple[LookupOutcome, CacheEntry]:
        """Redis lookup raced against the lookup timeout."""
        try:
            outcome = await bounded(
                self.cache.get_with_ttl(domain, *key_parts), self.lookup_timeout
            )
        except Exception as e:
            logger.warning(f"Cache lookup failed for {domain.value}: {e}")
            return LookupOutcome.ERROR, MISS

        if outcome.timed_out:
            logger.debug(
                f"Cache lookup for {domain.value} exceeded {self.lookup_timeout}s, "
                "falling back to source"
            )
            record_lookup_timeout(domain.value)
            return LookupOutcome.TIMEOUT, MISS

        entry = outcome.value or MISS
        if not entry.hit:
            return LookupOutcome.MISS, MISS
        return LookupOutcome.HIT, entry

    async def read(
        self,
        domain: CacheDomain,
        *key_parts: object,
        loader: Loader,
        local: LocalMemoryTier | None = None,
        write_back: Literal["async", "sync"] = "async",
    ) -> ReadResult:
        """Return the value for a key from the fastest tier that has it.

        ``loader`` is only awaited on a miss; its exceptions propagate. A
        loader result of None is returned as-is and never cached.

        Args:
            domain: Cache domain of the value
            key_parts: Parts of the cache key
            loader: Fetches the value from the catalog source
            local: Optional process-local tier checked first
            write_back: "async" schedules the cache write and returns at once;
                "sync" awaits it and reports SUCCESS or FAILED
        """
        key = self.cache.key(domain, *key_parts)

        if local is not None:
            value = local.read()
            if value is not None:
                record_cache_hit("memory", domain.value)
                return ReadResult(value, key, CacheStatus.HIT, DataSource.MEMORY_CACHE)

        outcome, entry = await self.lookup(domain, *key_parts)
        if outcome == LookupOutcome.HIT:
            record_cache_hit("redis", domain.value)
            if local is not None:
                local.write(entry.value)
            if entry.is_stale:
                if self.refresh_stale:
                    self._schedule_refresh(key, domain, key_parts, loader, local)
                return ReadResult(entry.value, key, CacheStatus.STALE, DataSource.REDIS_CACHE)
            return ReadResult(entry.value, key, CacheStatus.HIT, DataSource.REDIS_CACHE)

        record_cache_miss(domain.value)
        value = await loader()
        if value is None:
            return ReadResult(None, key, CacheStatus.MISS, DataSource.DATABASE)

        if local is not None:
            local.write(value)

        if write_back == "sync":
            stored = await self.cache.set(domain, value, *key_parts)
            cache_set = WriteBack.SUCCESS if stored else WriteBack.FAILED
        else:
            self.tasks.spawn(self.cache.set(domain, value, *key_parts), name=f"cache-set:{key}")
            cache_set = WriteBack.ASYNC

        return ReadResult(value, key, CacheStatus.MISS, DataSource.DATABASE, cache_set)

    def _schedule_refresh(
        self,
        key: str,
        domain: CacheDomain,
        key_parts: tuple[object, ...],
        loader: Loader,
        local: LocalMemoryTier | None,
    ) -> None:
        if key in self._refreshing:
            logger.debug(f"Refresh of {key} already in flight")
            return
        task = self.tasks.spawn(
            self._refresh(domain, key_parts, loader, local), name=f"cache-refresh:{key}"
        )
        self._refreshing[key] = task
        task.add_done_callback(lambda _: self._refreshing.pop(key, None))

    async def _refresh(
        self,
        domain: CacheDomain,
        key_parts: tuple[object, ...],
        loader: Loader,
        local: LocalMemoryTier | None,
    ) -> None:
        """Reload a stale entry from the source and rewrite it."""
        value = await loader()
        if value is None:
            return
        if local is not None:
            local.write(value)
        await self.cache.set(domain, value, *key_parts)
