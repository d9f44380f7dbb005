"""Listing query parameters.

A :class:`ProductListQuery` is the normalised form of the listing endpoint's
query string. Two requests that mean the same result set normalise to equal
queries, which is what makes listing cache keys deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any
from urllib.parse import quote

MIN_LIMIT = 1
MAX_LIMIT = 100
ALL_CATEGORIES = "all"


class SortField(str, Enum):
    """Listing sort keys."""

    DEFAULT = "default"  # newest first
    PRICE = "price"
    NAME = "name"


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


def _coerce_enum(enum_cls: type[Enum], value: Any, fallback: Enum) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        return fallback


@dataclass(frozen=True)
class ProductListQuery:
    """One page of the product listing."""

    limit: int = 12
    page: int = 1
    category: str = ALL_CATEGORIES
    featured: bool = False
    sort_by: SortField = SortField.DEFAULT
    sort_order: SortOrder = SortOrder.DESC

    def __post_init__(self) -> None:
        if not MIN_LIMIT <= self.limit <= MAX_LIMIT:
            raise ValueError(f"Limit must be between {MIN_LIMIT} and {MAX_LIMIT}")
        if self.page < 1:
            raise ValueError("Page must be 1 or greater")

        category = (self.category or "").strip().lower() or ALL_CATEGORIES
        sort_by = _coerce_enum(SortField, self.sort_by, SortField.DEFAULT)
        sort_order = _coerce_enum(SortOrder, self.sort_order, SortOrder.DESC)
        # The default ordering is always newest first, whatever was asked for
        if sort_by is SortField.DEFAULT:
            sort_order = SortOrder.DESC

        object.__setattr__(self, "category", category)
        object.__setattr__(self, "featured", bool(self.featured))
        object.__setattr__(self, "sort_by", sort_by)
        object.__setattr__(self, "sort_order", sort_order)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    @property
    def all_categories(self) -> bool:
        return self.category == ALL_CATEGORIES

    def with_page(self, page: int) -> ProductListQuery:
        return replace(self, page=page)

    def key_parts(self) -> tuple[str, ...]:
        """Every parameter that changes the result set, in a fixed order."""
        return (
            f"lt_{self.limit}",
            f"pg_{self.page}",
            # Quoted so a slug can never inject the ":" separator or glob characters
            f"cat_{quote(self.category, safe='-_.')}",
            f"feat_{'true' if self.featured else 'false'}",
            f"sortb_{self.sort_by.value}",
            f"sorto_{self.sort_order.value}",
        )
