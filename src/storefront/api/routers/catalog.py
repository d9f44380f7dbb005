"""Catalog read endpoints.

Every endpoint reads through the cache tiers and reports where the value
came from in ``X-Cache-Status``, ``X-Cache-Key`` and ``X-Data-Source``.
Category endpoints also check this process's local memory tier first.
"""

from __future__ import annotations

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse

from storefront.api.deps import get_catalog_source, get_local_tiers, get_reader
from storefront.api.errors import BadRequestError, NotFoundError
from storefront.cache.keys import CacheKeys
from storefront.cache.local import LocalTiers
from storefront.cache.policy import CacheDomain
from storefront.cache.read_through import CachedReader, ReadResult
from storefront.cache.values import dump_value
from storefront.catalog.query import MAX_LIMIT, MIN_LIMIT, ProductListQuery
from storefront.catalog.source import CatalogSource

router = APIRouter(prefix="/api", tags=["catalog"])

CATEGORY_LIST_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"
CATEGORY_OPTIONS_CACHE_CONTROL = "public, s-maxage=120, stale-while-revalidate=600"
RATINGS_CACHE_CONTROL = "public, s-maxage=60, stale-while-revalidate=300"


def _respond(
    domain: CacheDomain, result: ReadResult, cache_control: str | None = None
) -> ORJSONResponse:
    content: Any = dump_value(domain, result.value)
    return ORJSONResponse(content=content, headers=result.headers(cache_control))


@router.get("/products")
async def list_products(
    reader: Annotated[CachedReader, Depends(get_reader)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
    limit: Annotated[int, Query(ge=MIN_LIMIT, le=MAX_LIMIT)] = 12,
    page: Annotated[int, Query(ge=1)] = 1,
    category: str = "all",
    featured: bool = False,
    sort_by: Annotated[str, Query(alias="sortBy")] = "default",
    sort_order: Annotated[str, Query(alias="sortOrder")] = "desc",
) -> ORJSONResponse:
    """One page of the product listing."""
    try:
        query = ProductListQuery(
            limit=limit,
            page=page,
            category=category,
            featured=featured,
            sort_by=sort_by,  # type: ignore[arg-type]
            sort_order=sort_order,  # type: ignore[arg-type]
        )
    except ValueError as e:
        raise BadRequestError(str(e)) from e

    result = await reader.read(
        CacheDomain.PRODUCT_LIST,
        *query.key_parts(),
        loader=lambda: source.fetch_product_page(query),
    )
    return _respond(CacheDomain.PRODUCT_LIST, result)


@router.get("/products/{slug}")
async def get_product(
    slug: str,
    reader: Annotated[CachedReader, Depends(get_reader)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
) -> ORJSONResponse:
    """A single product by slug."""
    if not slug.strip():
        raise BadRequestError("Product slug is required")

    result = await reader.read(
        CacheDomain.PRODUCT, slug, loader=lambda: source.get_product(slug)
    )
    if not result.found:
        raise NotFoundError("Product", slug)
    return _respond(CacheDomain.PRODUCT, result)


@router.get("/categories")
async def list_categories(
    reader: Annotated[CachedReader, Depends(get_reader)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
    tiers: Annotated[LocalTiers, Depends(get_local_tiers)],
) -> ORJSONResponse:
    """Displayed categories with their images."""
    result = await reader.read(
        CacheDomain.CATEGORY_LIST,
        loader=lambda: source.list_categories(with_images=True),
        local=tiers.category_list,
    )
    return _respond(CacheDomain.CATEGORY_LIST, result, CATEGORY_LIST_CACHE_CONTROL)


@router.get("/categories/options")
async def list_category_options(
    reader: Annotated[CachedReader, Depends(get_reader)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
    tiers: Annotated[LocalTiers, Depends(get_local_tiers)],
) -> ORJSONResponse:
    """Category id/name/slug triples for filters."""
    result = await reader.read(
        CacheDomain.CATEGORY_OPTIONS,
        loader=source.list_category_options,
        local=tiers.category_options,
    )
    return _respond(CacheDomain.CATEGORY_OPTIONS, result, CATEGORY_OPTIONS_CACHE_CONTROL)


@router.get("/ratings")
async def list_ratings(
    reader: Annotated[CachedReader, Depends(get_reader)],
    source: Annotated[CatalogSource, Depends(get_catalog_source)],
    product_id: str | None = None,
) -> ORJSONResponse:
    """All ratings, or one product's ratings when ``product_id`` is given."""
    result = await reader.read(
        CacheDomain.RATINGS,
        *CacheKeys.ratings_parts(product_id),
        loader=lambda: source.list_ratings(product_id),
    )
    return _respond(CacheDomain.RATINGS, result, RATINGS_CACHE_CONTROL)
