"""API test fixtures.

The app is built with :func:`create_app` and its state dependencies are
overridden with in-memory fakes, so the lifespan (Redis, PostgreSQL) never
runs.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from storefront.api.app import create_app
from storefront.api.deps import (
    get_cache_service,
    get_catalog_source,
    get_local_tiers,
    get_reader,
    get_warmer,
)
from storefront.cache.concurrency import DetachedTasks
from storefront.cache.local import LocalTiers
from storefront.cache.read_through import CachedReader
from storefront.cache.service import CacheService
from storefront.cache.warmer import CacheWarmer, WarmPlan
from storefront.catalog.query import SortField, SortOrder
from tests.fakes import FakeCatalogSource

API_WARM_PLAN = WarmPlan(
    page_sizes=(12,),
    sort_combinations=((SortField.DEFAULT, SortOrder.DESC),),
    featured_flags=(False,),
)


@pytest.fixture
def write_backs() -> DetachedTasks:
    return DetachedTasks("test write-back")


@pytest.fixture
def local_tiers() -> LocalTiers:
    return LocalTiers.from_settings()


@pytest.fixture
def app(
    cache_service: CacheService,
    catalog: FakeCatalogSource,
    write_backs: DetachedTasks,
    local_tiers: LocalTiers,
) -> FastAPI:
    app = create_app()
    reader = CachedReader(cache_service, write_backs, lookup_timeout=0.1)

    app.dependency_overrides[get_cache_service] = lambda: cache_service
    app.dependency_overrides[get_reader] = lambda: reader
    app.dependency_overrides[get_local_tiers] = lambda: local_tiers
    app.dependency_overrides[get_catalog_source] = lambda: catalog
    app.dependency_overrides[get_warmer] = lambda: CacheWarmer(
        cache_service, catalog, API_WARM_PLAN
    )
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI, write_backs: DetachedTasks) -> AsyncIterator[AsyncClient]:
    async with AsyncClient(
        transport=ASGITransport(app=app, raise_app_exceptions=False),
        base_url="http://test",
    ) as client:
        yield client
    await write_backs.drain(1.0)
