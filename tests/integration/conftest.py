"""Integration test fixtures using Docker.

Provides containerized PostgreSQL and Redis. Tests here are marked
``integration`` and skip when Docker is unavailable.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import AsyncIterator, Iterator
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
import redis.asyncio as aioredis
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.config import settings
from storefront.persistence import db as db_module
from storefront.persistence.tables import (
    Base,
    CategoryImageTable,
    CategoryTable,
    ProductImageTable,
    ProductTable,
    ProductVariantTable,
    RatingTable,
    SizeTable,
)
from tests.integration.docker_utils import ServiceContainer, get_docker_client, service_container

SEED_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


def pytest_collection_modifyitems(items):
    for item in items:
        if "integration" in item.path.parts:
            item.add_marker(pytest.mark.integration)


@pytest.fixture(scope="session")
def docker_client():
    """Create a Docker client or skip if Docker is unavailable."""
    try:
        client = get_docker_client()
        client.ping()
    except Exception as exc:
        pytest.skip(f"Docker not available: {exc}")
    yield client
    client.close()


@pytest.fixture(scope="session")
def postgres(docker_client) -> Iterator[ServiceContainer]:
    env = {
        "POSTGRES_USER": "storefront",
        "POSTGRES_PASSWORD": "storefront",
        "POSTGRES_DB": "storefront",
    }
    with service_container(docker_client, "postgres:16-alpine", 5432, env) as service:
        yield service


@pytest.fixture(scope="session")
def redis_service(docker_client) -> Iterator[ServiceContainer]:
    with service_container(docker_client, "redis:7-alpine", 6379) as service:
        yield service


@pytest.fixture(scope="session")
def database_url(postgres: ServiceContainer) -> str:
    return f"postgresql+asyncpg://storefront:storefront@{postgres.host}:{postgres.port}/storefront"


@pytest_asyncio.fixture
async def redis_client(redis_service: ServiceContainer) -> AsyncIterator[Redis]:
    client = aioredis.from_url(f"redis://{redis_service.host}:{redis_service.port}/0")
    await _wait_for(client.ping)
    yield client
    await client.flushdb()
    await client.aclose()


@pytest_asyncio.fixture
async def session_factory(
    database_url: str, monkeypatch: pytest.MonkeyPatch
) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """The application's own engine, pointed at the container, with seeded tables."""
    monkeypatch.setattr(settings, "database_url", database_url)
    await db_module.close_db()
    await _wait_for(db_module.health_check)

    await db_module.init_db()
    await seed_catalog()

    yield db_module.get_session_factory()

    async with db_module.get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await db_module.close_db()


async def seed_catalog() -> None:
    """Two shown categories, one hidden, 30 products and a few ratings.

    Written in dependency order, one transaction per level.
    """
    async with db_module.session_context() as session:
        session.add_all(
            [
                SizeTable(slug="s", name="Small", display_order=1),
                SizeTable(slug="m", name="Medium", display_order=2),
                CategoryTable(
                    slug="hats",
                    name="Hats",
                    display=True,
                    images=[
                        CategoryImageTable(
                            storage_path="categories/hats.jpg", is_primary=True, display_order=0
                        )
                    ],
                ),
                CategoryTable(slug="shirts", name="Shirts", display=True),
                CategoryTable(slug="archive", name="Archive", display=False),
            ]
        )

    async with db_module.session_context() as session:
        for i in range(30):
            session.add(
                ProductTable(
                    slug=f"product-{i:03d}",
                    name=f"Product {i:03d}",
                    price=Decimal(10 + i),
                    stock_quantity=5,
                    is_featured=i < 10,
                    category_slug="shirts" if i % 2 == 0 else "hats",
                    created_at=SEED_TIME + timedelta(minutes=i),
                    images=[
                        ProductImageTable(url=f"/images/product-{i:03d}-{n}.jpg", display_order=n)
                        for n in range(4)
                    ],
                    variants=[
                        ProductVariantTable(size_slug="s", stock_quantity=2),
                        ProductVariantTable(
                            size_slug="m", price=Decimal(12 + i), stock_quantity=1
                        ),
                    ],
                )
            )

    async with db_module.session_context() as session:
        session.add_all(
            RatingTable(
                product_slug=f"product-{i % 3:03d}",
                rating=(i % 5) + 1,
                images=[f"/ratings/rating-{i}.jpg"] if i == 0 else [],
                created_at=SEED_TIME + timedelta(hours=i),
            )
            for i in range(6)
        )


async def _wait_for(check, timeout: float = 30.0) -> None:
    """Wait until ``check()`` succeeds (returns without raising and not False)."""
    deadline = time.monotonic() + timeout
    while True:
        try:
            if await check() is not False:
                return
        except Exception:
            if time.monotonic() >= deadline:
                raise
        else:
            if time.monotonic() >= deadline:
                raise TimeoutError("service did not become ready")
        await asyncio.sleep(0.5)
