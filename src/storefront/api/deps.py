"""Shared FastAPI dependencies for storefront routers.

The cache service, reader, local tiers and catalog source are built once in
the application lifespan and stored on ``app.state``; these dependencies
hand them to route handlers (and are what tests override).
"""

from __future__ import annotations

from fastapi import Request

from storefront.cache.local import LocalTiers
from storefront.cache.read_through import CachedReader
from storefront.cache.service import CacheService
from storefront.cache.warmer import CacheWarmer
from storefront.catalog.source import CatalogSource


def get_cache_service(request: Request) -> CacheService:
    return request.app.state.cache_service


def get_reader(request: Request) -> CachedReader:
    return request.app.state.reader


def get_local_tiers(request: Request) -> LocalTiers:
    return request.app.state.local_tiers


def get_catalog_source(request: Request) -> CatalogSource:
    return request.app.state.catalog_source


def get_warmer(request: Request) -> CacheWarmer:
    """A warmer over the app's cache service and catalog source."""
    return CacheWarmer(request.app.state.cache_service, request.app.state.catalog_source)
