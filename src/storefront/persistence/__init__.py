"""Persistence layer for the storefront catalog.

This module provides:
- Async PostgreSQL engine and session factory
- SQLAlchemy ORM models for the catalog tables
"""

from storefront.persistence.db import get_engine, get_session_factory, init_db
from storefront.persistence.tables import (
    CategoryTable,
    ProductTable,
    ProductVariantTable,
    RatingTable,
)

__all__ = [
    # DB
    "get_engine",
    "get_session_factory",
    "init_db",
    # Tables
    "CategoryTable",
    "ProductTable",
    "ProductVariantTable",
    "RatingTable",
]
