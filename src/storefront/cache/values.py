"""Typed cache values, one schema per domain.

Catalog domains are validated on the way in and on the way out, so a
malformed or foreign payload in Redis reads as a miss instead of leaking
into a response. User domains are opaque JSON.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from pydantic import TypeAdapter

from storefront.cache.policy import CacheDomain
from storefront.catalog.schemas import (
    Category,
    CategoryOption,
    Product,
    ProductListPage,
    Rating,
)

VALUE_TYPES: dict[CacheDomain, Any] = {
    CacheDomain.PRODUCT: Product,
    CacheDomain.PRODUCT_LIST: ProductListPage,
    CacheDomain.CATEGORY_LIST: list[Category],
    CacheDomain.CATEGORY_OPTIONS: list[CategoryOption],
    CacheDomain.RATINGS: list[Rating],
}


@lru_cache(maxsize=None)
def adapter_for(domain: CacheDomain) -> TypeAdapter[Any]:
    return TypeAdapter(VALUE_TYPES.get(domain, Any))


def load_value(domain: CacheDomain, payload: Any) -> Any:
    """Validate a decoded payload into the domain's value type.

    Raises:
        pydantic.ValidationError: if the payload doesn't match the schema
    """
    return adapter_for(domain).validate_python(payload)


def dump_value(domain: CacheDomain, value: Any) -> Any:
    """Validate a value and convert it to JSON-compatible Python data."""
    adapter = adapter_for(domain)
    return adapter.dump_python(adapter.validate_python(value), mode="json", by_alias=True)
