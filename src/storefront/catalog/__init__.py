"""Catalog source of record and the value shapes the cache stores."""

from storefront.catalog.query import ProductListQuery, SortField, SortOrder
from storefront.catalog.source import CatalogSource, SqlCatalogSource

__all__ = [
    "CatalogSource",
    "ProductListQuery",
    "SortField",
    "SortOrder",
    "SqlCatalogSource",
]
