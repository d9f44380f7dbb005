"""API routers for the storefront catalog cache."""

from storefront.api.routers import cache, catalog, health, metrics

__all__ = [
    "cache",
    "catalog",
    "health",
    "metrics",
]
