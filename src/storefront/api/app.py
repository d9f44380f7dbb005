"""FastAPI application factory for the storefront catalog cache.

Creates the application with:
- Catalog read endpoints backed by the two-tier cache
- Cache warming and invalidation endpoints
- Health probes and Prometheus metrics
- Lifecycle management for the database, Redis and detached cache writes
- ORJSON for fast JSON serialization
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

from fastapi import FastAPI
from fastapi.responses import ORJSONResponse
from starlette.types import ExceptionHandler

from storefront.api.errors import (
    StorefrontApiError,
    catalog_source_exception_handler,
    generic_exception_handler,
    storefront_api_exception_handler,
)
from storefront.api.middleware import CorrelationMiddleware
from storefront.api.routers import cache, catalog, health
from storefront.api.routers import metrics as metrics_router
from storefront.cache.concurrency import DetachedTasks
from storefront.cache.local import LocalTiers
from storefront.cache.read_through import CachedReader
from storefront.cache.redis import RedisStore, close_redis, get_redis
from storefront.cache.service import CacheService
from storefront.catalog.source import SqlCatalogSource
from storefront.config import settings
from storefront.errors import CatalogSourceError
from storefront.observability.logging import configure_logging
from storefront.observability.metrics import MetricsMiddleware, get_metrics
from storefront.persistence.db import close_db, get_session_factory

logger = logging.getLogger(__name__)

# Seconds to let in-flight cache writes finish at shutdown
WRITE_BACK_DRAIN_TIMEOUT = 5.0


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    On startup:
    - Configure structured logging
    - Initialize Prometheus metrics
    - Connect Redis and build the cache service, reader and local tiers
    - Build the SQL catalog source

    On shutdown:
    - Let detached cache writes finish (bounded)
    - Close Redis and database connections
    """
    json_logs = settings.log_json if settings.log_json is not None else settings.env != "dev"
    configure_logging(json_format=json_logs, level=settings.log_level)
    get_metrics()

    logger.info(f"Starting storefront cache ({settings.env}, instance {settings.instance_id})")
    store = RedisStore(await get_redis())
    write_backs = DetachedTasks("cache write-back")

    app.state.local_tiers = LocalTiers.from_settings()
    app.state.write_backs = write_backs
    app.state.cache_service = CacheService(store)
    app.state.reader = CachedReader(app.state.cache_service, write_backs)
    app.state.catalog_source = SqlCatalogSource(get_session_factory())
    logger.info("Storefront cache startup complete")

    yield

    logger.info("Shutting down storefront cache")
    await write_backs.drain(timeout=WRITE_BACK_DRAIN_TIMEOUT)
    await close_redis()
    await close_db()
    logger.info("Storefront cache shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Storefront Catalog Cache",
        description="Two-tier cache and cache warming for the storefront catalog",
        version="0.1.0",
        default_response_class=ORJSONResponse,
        lifespan=lifespan,
    )

    # CorrelationMiddleware is added first so it runs innermost
    app.add_middleware(CorrelationMiddleware)
    if settings.enable_metrics:
        app.add_middleware(MetricsMiddleware)

    app.add_exception_handler(
        StorefrontApiError, cast(ExceptionHandler, storefront_api_exception_handler)
    )
    app.add_exception_handler(
        CatalogSourceError, cast(ExceptionHandler, catalog_source_exception_handler)
    )
    app.add_exception_handler(Exception, cast(ExceptionHandler, generic_exception_handler))

    app.include_router(health.router)
    if settings.enable_metrics:
        app.include_router(metrics_router.router)
    app.include_router(catalog.router)
    app.include_router(cache.router)

    return app
