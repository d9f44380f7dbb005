"""Catalog value shapes.

These are the exact payloads the API returns and the cache stores. Field
names on the wire follow the storefront's existing JSON (snake_case rows,
camelCase pagination).
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

MAX_LISTING_IMAGES = 3


class CatalogModel(BaseModel):
    """Base for cached catalog values.

    Unknown fields are ignored so entries written by a newer deployment
    still validate.
    """

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class CategoryRef(CatalogModel):
    name: str
    slug: str


class SizeOption(CatalogModel):
    """Purchasable size aggregated from a product's variants."""

    name: str
    slug: str | None = None
    price: float
    stock_quantity: int = 0
    display_order: int = 0


class Product(CatalogModel):
    id: str
    slug: str
    name: str
    description: str | None = None
    price: float
    stock_quantity: int = 0
    is_featured: bool = False
    category_slug: str | None = None
    category: CategoryRef | None = None
    images: list[str] = Field(default_factory=list, max_length=MAX_LISTING_IMAGES)
    sizes: list[SizeOption] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime | None = None


class Pagination(CatalogModel):
    current_page: int = Field(alias="currentPage", ge=1)
    total_pages: int = Field(alias="totalPages", ge=0)
    total_items: int = Field(alias="totalItems", ge=0)
    items_per_page: int = Field(alias="itemsPerPage", ge=1)
    has_next_page: bool = Field(alias="hasNextPage")
    has_prev_page: bool = Field(alias="hasPrevPage")

    @classmethod
    def build(cls, page: int, limit: int, total_items: int) -> Pagination:
        total_pages = -(-total_items // limit)  # ceil
        return cls(
            current_page=page,
            total_pages=total_pages,
            total_items=total_items,
            items_per_page=limit,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class ProductListPage(CatalogModel):
    """One page of the product listing."""

    products: list[Product]
    pagination: Pagination


class CategoryImage(CatalogModel):
    id: str | None = None
    url: str
    storage_path: str | None = None
    is_primary: bool = False
    display_order: int = 0


class Category(CatalogModel):
    id: str
    slug: str
    name: str
    description: str | None = None
    display: bool = True
    images: list[CategoryImage] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryOption(CatalogModel):
    """Lightweight category entry for filters and dropdowns."""

    id: str
    name: str
    slug: str


class Rating(CatalogModel):
    id: str
    product_slug: str | None = None
    user_id: str | None = None
    rating: int = Field(ge=1, le=5)
    comment: str | None = None
    images: list[str] = Field(default_factory=list)
    created_at: datetime
