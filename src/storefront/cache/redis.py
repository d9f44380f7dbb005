"""Redis store client for the storefront cache.

Thin async wrapper over redis-py: JSON values (orjson), TTL on every write,
glob invalidation via SCAN. Errors from Redis propagate; deciding that a
failure is "just a miss" is the job of :class:`storefront.cache.service.CacheService`.
"""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, cast

import orjson
import redis.asyncio as redis

from storefront.config import settings

if TYPE_CHECKING:
    from redis.asyncio import Redis

# Module-level connection pool
_redis_client: Redis | None = None

# Batch size for SCAN-driven pattern deletes
SCAN_BATCH = 500

# Redis TTL sentinels
TTL_NO_EXPIRY = -1
TTL_MISSING = -2


async def get_redis() -> Redis:
    """Get or create the Redis client.

    Uses connection pooling for efficient connection management.
    """
    global _redis_client
    if _redis_client is None:
        _redis_client = redis.from_url(  # type: ignore[no-untyped-call]
            settings.redis_url,
            decode_responses=False,  # values are orjson bytes
            socket_timeout=settings.redis_socket_timeout,
            socket_connect_timeout=settings.redis_connect_timeout,
        )
    return _redis_client


async def close_redis() -> None:
    """Close Redis connections."""
    global _redis_client
    if _redis_client is not None:
        await _redis_client.aclose()
        _redis_client = None


@dataclass(frozen=True)
class CacheEntry:
    """A cached value with the store's remaining TTL.

    ``is_stale`` is derived at read time, never stored.
    """

    value: Any
    ttl: int
    is_stale: bool = False

    @property
    def hit(self) -> bool:
        return self.value is not None


MISS = CacheEntry(value=None, ttl=TTL_MISSING, is_stale=False)


class RedisStore:
    """Key/value operations against Redis."""

    def __init__(self, client: Redis):
        self.client = client

    @staticmethod
    def encode(value: Any) -> bytes:
        return orjson.dumps(value)

    @staticmethod
    def decode(raw: bytes | str) -> Any:
        """Decode a stored payload.

        Raises:
            orjson.JSONDecodeError: if the payload isn't JSON
        """
        return orjson.loads(raw)

    async def get(self, key: str) -> Any | None:
        """Get and decode a value. Returns None if not cached."""
        raw = await self.client.get(key)
        if raw is None:
            return None
        return self.decode(raw)

    async def get_with_ttl(self, key: str, stale_below: int | None = None) -> CacheEntry:
        """Get a value and its remaining TTL in one round trip.

        Args:
            key: Cache key
            stale_below: remaining TTL (seconds) under which the entry is stale

        Returns:
            CacheEntry; ``MISS`` if the key doesn't exist.
        """
        async with self.client.pipeline(transaction=False) as pipe:
            pipe.get(key)
            pipe.ttl(key)
            raw, ttl = await pipe.execute()

        if raw is None:
            return MISS

        ttl = int(ttl)
        is_stale = (
            stale_below is not None and ttl != TTL_NO_EXPIRY and 0 <= ttl < stale_below
        )
        return CacheEntry(value=self.decode(raw), ttl=ttl, is_stale=is_stale)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        """Store a value with a TTL in seconds."""
        if ttl <= 0:
            raise ValueError(f"TTL must be positive, got {ttl}")
        return bool(await self.client.set(key, self.encode(value), ex=ttl))

    async def delete(self, key: str) -> bool:
        """Delete a key. Deleting a missing key is not an error."""
        await self.client.delete(key)
        return True

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob.

        Uses SCAN to avoid blocking Redis on large keyspaces.
        Returns the number of keys deleted.
        """
        deleted = 0
        batch: list[bytes | str] = []

        async for key in self.client.scan_iter(match=pattern, count=SCAN_BATCH):
            batch.append(key)
            if len(batch) >= SCAN_BATCH:
                deleted += int(await self.client.delete(*batch))
                batch.clear()

        if batch:
            deleted += int(await self.client.delete(*batch))

        return deleted

    async def ttl(self, key: str) -> int:
        return int(await self.client.ttl(key))

    async def ping(self) -> bool:
        return bool(await cast(Awaitable[bool], self.client.ping()))

    async def health_check(self) -> bool:
        """Check Redis connectivity."""
        try:
            return await self.ping()
        except Exception:
            return False
