"""Tests for tiered read-through access."""

from __future__ import annotations

import asyncio

import pytest

from storefront.cache.concurrency import DetachedTasks
from storefront.cache.local import LocalMemoryTier
from storefront.cache.policy import CacheDomain
from storefront.cache.read_through import (
    CachedReader,
    CacheStatus,
    DataSource,
    LookupOutcome,
    ReadResult,
    WriteBack,
)
from storefront.cache.service import CacheService
from tests.fakes import FakeRedis, make_category, make_product


class CountingLoader:
    """Loader that counts calls and returns a fixed value."""

    def __init__(self, value):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self.value


@pytest.fixture
def tasks() -> DetachedTasks:
    return DetachedTasks("test write-back")


@pytest.fixture
def reader(cache_service: CacheService, tasks: DetachedTasks) -> CachedReader:
    return CachedReader(cache_service, tasks, lookup_timeout=0.05)


class TestReadThrough:
    """Miss, hit and write-back behaviour."""

    @pytest.mark.asyncio
    async def test_miss_loads_and_writes_back(
        self, reader: CachedReader, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        product = make_product(1)
        loader = CountingLoader(product)

        result = await reader.read(CacheDomain.PRODUCT, product.slug, loader=loader)

        assert result.value == product
        assert result.cache_status is CacheStatus.MISS
        assert result.data_source is DataSource.DATABASE
        assert result.cache_set is WriteBack.ASYNC
        assert loader.calls == 1

        await tasks.drain(1.0)
        assert "product:product-001" in fake_redis.data

    @pytest.mark.asyncio
    async def test_second_read_is_a_redis_hit(
        self, reader: CachedReader, tasks: DetachedTasks
    ) -> None:
        product = make_product(1)
        loader = CountingLoader(product)
        await reader.read(CacheDomain.PRODUCT, product.slug, loader=loader)
        await tasks.drain(1.0)

        result = await reader.read(CacheDomain.PRODUCT, product.slug, loader=loader)

        assert result.cache_status is CacheStatus.HIT
        assert result.data_source is DataSource.REDIS_CACHE
        assert result.cache_set is None
        assert result.value == product
        assert loader.calls == 1

    @pytest.mark.asyncio
    async def test_slow_write_does_not_delay_response(
        self, reader: CachedReader, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        """The response returns before a slow cache write finishes."""
        fake_redis.delays["set"] = 0.3
        loop = asyncio.get_running_loop()
        start = loop.time()

        result = await reader.read(
            CacheDomain.PRODUCT, "product-001", loader=CountingLoader(make_product(1))
        )

        assert loop.time() - start < 0.2
        assert result.cache_set is WriteBack.ASYNC
        assert len(tasks) == 1
        assert "product:product-001" not in fake_redis.data

        await tasks.drain(1.0)
        assert "product:product-001" in fake_redis.data

    @pytest.mark.asyncio
    async def test_failing_write_does_not_change_response(
        self, reader: CachedReader, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        fake_redis.fail_with = ConnectionError("set refused")
        fake_redis.fail_ops = {"set"}
        product = make_product(1)

        result = await reader.read(
            CacheDomain.PRODUCT, product.slug, loader=CountingLoader(product)
        )
        await tasks.drain(1.0)

        assert result.value == product
        assert result.cache_status is CacheStatus.MISS
        assert not fake_redis.data

    @pytest.mark.asyncio
    async def test_sync_write_back_reports_outcome(
        self, reader: CachedReader, fake_redis: FakeRedis
    ) -> None:
        ok = await reader.read(
            CacheDomain.RATINGS, "all", loader=CountingLoader([]), write_back="sync"
        )
        assert ok.cache_set is WriteBack.SUCCESS

        fake_redis.fail_with = ConnectionError("set refused")
        fake_redis.fail_ops = {"set"}
        failed = await reader.read(
            CacheDomain.PRODUCT, "product-002", loader=CountingLoader(make_product(2)),
            write_back="sync",
        )
        assert failed.cache_set is WriteBack.FAILED

    @pytest.mark.asyncio
    async def test_none_is_not_cached(
        self, reader: CachedReader, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        result = await reader.read(CacheDomain.PRODUCT, "missing", loader=CountingLoader(None))
        await tasks.drain(1.0)

        assert result.found is False
        assert result.cache_status is CacheStatus.MISS
        assert result.cache_set is None
        assert len(tasks) == 0
        assert not fake_redis.set_calls

    @pytest.mark.asyncio
    async def test_loader_error_propagates(self, reader: CachedReader) -> None:
        async def broken():
            raise RuntimeError("source down")

        with pytest.raises(RuntimeError, match="source down"):
            await reader.read(CacheDomain.PRODUCT, "product-001", loader=broken)

    @pytest.mark.asyncio
    async def test_written_with_domain_ttl(
        self, reader: CachedReader, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        await reader.read(CacheDomain.CATEGORY_OPTIONS, loader=CountingLoader([]))
        await tasks.drain(1.0)
        assert fake_redis.set_calls == [("categories:options", 7200)]


class TestLookupBounds:
    """The Redis lookup never holds a request past the timeout."""

    @pytest.mark.asyncio
    async def test_slow_store_falls_back_to_source(
        self, reader: CachedReader, fake_redis: FakeRedis
    ) -> None:
        fake_redis.delays["pipeline"] = 0.5
        product = make_product(1)
        loop = asyncio.get_running_loop()
        start = loop.time()

        result = await reader.read(CacheDomain.PRODUCT, product.slug, loader=CountingLoader(product))

        assert loop.time() - start < 0.3
        assert result.value == product
        assert result.data_source is DataSource.DATABASE
        await asyncio.sleep(0.5)

    @pytest.mark.asyncio
    async def test_lookup_outcomes(self, reader: CachedReader, fake_redis: FakeRedis) -> None:
        outcome, _ = await reader.lookup(CacheDomain.RATINGS, "all")
        assert outcome is LookupOutcome.MISS

        fake_redis.delays["pipeline"] = 0.2
        outcome, entry = await reader.lookup(CacheDomain.RATINGS, "all")
        assert outcome is LookupOutcome.TIMEOUT
        assert entry.hit is False
        await asyncio.sleep(0.2)

    @pytest.mark.asyncio
    async def test_store_error_is_a_miss(self, reader: CachedReader, fake_redis: FakeRedis) -> None:
        fake_redis.fail_with = ConnectionError("down")
        loader = CountingLoader([])

        result = await reader.read(CacheDomain.RATINGS, "all", loader=loader)

        assert result.cache_status is CacheStatus.MISS
        assert loader.calls == 1
        await reader.tasks.drain(1.0)


class TestLocalTier:
    """Process-local tier in front of Redis."""

    @pytest.mark.asyncio
    async def test_local_hit_skips_redis(
        self, reader: CachedReader, fake_redis: FakeRedis
    ) -> None:
        local = LocalMemoryTier("category_list", ttl=60)
        categories = [make_category("hats")]
        local.write(categories)
        fake_redis.fail_with = AssertionError("redis must not be touched")

        result = await reader.read(
            CacheDomain.CATEGORY_LIST, loader=CountingLoader(None), local=local
        )

        assert result.value == categories
        assert result.data_source is DataSource.MEMORY_CACHE
        assert result.cache_status is CacheStatus.HIT

    @pytest.mark.asyncio
    async def test_miss_fills_local_tier(self, reader: CachedReader) -> None:
        local = LocalMemoryTier("category_list", ttl=60)
        categories = [make_category("hats")]

        await reader.read(CacheDomain.CATEGORY_LIST, loader=CountingLoader(categories), local=local)

        assert local.read() == categories

    @pytest.mark.asyncio
    async def test_redis_hit_fills_local_tier(
        self, reader: CachedReader, cache_service: CacheService
    ) -> None:
        categories = [make_category("shirts")]
        await cache_service.set(CacheDomain.CATEGORY_LIST, categories)
        local = LocalMemoryTier("category_list", ttl=60)

        result = await reader.read(CacheDomain.CATEGORY_LIST, loader=CountingLoader(None), local=local)

        assert result.data_source is DataSource.REDIS_CACHE
        assert local.read() == categories


class TestStaleEntries:
    """Entries near expiry are served and refreshed in the background."""

    @pytest.mark.asyncio
    async def test_stale_entry_is_served_and_refreshed(
        self,
        reader: CachedReader,
        tasks: DetachedTasks,
        cache_service: CacheService,
        fake_redis: FakeRedis,
    ) -> None:
        old = make_product(1, price=10.0)
        new = make_product(1, price=12.0)
        await cache_service.set(CacheDomain.PRODUCT, old, old.slug)
        fake_redis.advance(1700)
        loader = CountingLoader(new)

        result = await reader.read(CacheDomain.PRODUCT, old.slug, loader=loader)

        assert result.cache_status is CacheStatus.STALE
        assert result.value == old
        await tasks.drain(1.0)
        assert loader.calls == 1
        assert await cache_service.get(CacheDomain.PRODUCT, old.slug) == new

    @pytest.mark.asyncio
    async def test_concurrent_stale_reads_share_one_refresh(
        self,
        reader: CachedReader,
        tasks: DetachedTasks,
        cache_service: CacheService,
        fake_redis: FakeRedis,
    ) -> None:
        product = make_product(2)
        await cache_service.set(CacheDomain.PRODUCT, product, product.slug)
        fake_redis.advance(1700)
        calls = 0

        async def slow_loader():
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.05)
            return product

        reads = [
            reader.read(CacheDomain.PRODUCT, product.slug, loader=slow_loader) for _ in range(50)
        ]
        results = await asyncio.gather(*reads)
        await tasks.drain(1.0)

        assert {r.cache_status for r in results} == {CacheStatus.STALE}
        assert calls == 1

    @pytest.mark.asyncio
    async def test_failed_refresh_can_be_retried(
        self,
        reader: CachedReader,
        tasks: DetachedTasks,
        cache_service: CacheService,
        fake_redis: FakeRedis,
    ) -> None:
        product = make_product(3)
        await cache_service.set(CacheDomain.PRODUCT, product, product.slug)
        fake_redis.advance(1700)
        calls = 0

        async def failing_loader():
            nonlocal calls
            calls += 1
            raise RuntimeError("source down")

        await reader.read(CacheDomain.PRODUCT, product.slug, loader=failing_loader)
        await tasks.drain(1.0)
        await reader.read(CacheDomain.PRODUCT, product.slug, loader=failing_loader)
        await tasks.drain(1.0)

        assert calls == 2

    @pytest.mark.asyncio
    async def test_refresh_can_be_disabled(
        self, cache_service: CacheService, tasks: DetachedTasks, fake_redis: FakeRedis
    ) -> None:
        reader = CachedReader(cache_service, tasks, lookup_timeout=0.05, refresh_stale=False)
        await cache_service.set(CacheDomain.RATINGS, [], "all")
        fake_redis.advance(850)
        loader = CountingLoader([])

        result = await reader.read(CacheDomain.RATINGS, "all", loader=loader)

        assert result.cache_status is CacheStatus.STALE
        assert len(tasks) == 0
        assert loader.calls == 0


class TestReadResultHeaders:
    def test_miss_headers(self) -> None:
        result = ReadResult(
            [], "ratings:all", CacheStatus.MISS, DataSource.DATABASE, WriteBack.ASYNC
        )
        assert result.headers("public, s-maxage=60") == {
            "X-Cache-Status": "MISS",
            "X-Cache-Key": "ratings:all",
            "X-Data-Source": "DATABASE",
            "X-Cache-Set": "ASYNC",
            "Cache-Control": "public, s-maxage=60",
        }

    def test_hit_headers_omit_cache_set(self) -> None:
        result = ReadResult([], "ratings:all", CacheStatus.HIT, DataSource.REDIS_CACHE)
        headers = result.headers()
        assert "X-Cache-Set" not in headers
        assert "Cache-Control" not in headers
