"""Global pytest configuration and fixtures.

Redis and the catalog database are replaced by the in-memory fakes in
``tests/fakes.py``.
"""

from __future__ import annotations

import pytest

from storefront.cache.policy import TtlPolicy
from storefront.cache.redis import RedisStore
from storefront.cache.service import CacheService
from tests.fakes import (
    FakeCatalogSource,
    FakeRedis,
    make_category,
    make_product,
    make_rating,
)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "integration: needs a live Redis and PostgreSQL")


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> RedisStore:
    return RedisStore(fake_redis)  # type: ignore[arg-type]


@pytest.fixture
def cache_service(store: RedisStore) -> CacheService:
    """Cache service with default TTLs and a 0.2 stale fraction."""
    return CacheService(store, TtlPolicy(), stale_fraction=0.2)


@pytest.fixture
def catalog() -> FakeCatalogSource:
    """30 products (10 featured) in two categories, with ratings on three products."""
    products = [
        make_product(i, category="shirts" if i % 2 == 0 else "hats", featured=i < 10)
        for i in range(30)
    ]
    categories = [make_category("hats"), make_category("shirts")]
    ratings = [make_rating(i, products[i % 3].slug) for i in range(6)]
    return FakeCatalogSource(products, categories, ratings)
