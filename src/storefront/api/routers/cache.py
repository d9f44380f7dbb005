"""Cache control endpoints.

Provides:
- Cache warming (deployment hook)
- Invalidation after catalog changes
- Pattern-based key deletion
- Per-user cache inspection and clearing
"""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from fastapi.responses import ORJSONResponse
from pydantic import BaseModel

from storefront.api.deps import get_cache_service, get_local_tiers, get_warmer
from storefront.api.errors import BadRequestError
from storefront.cache.keys import CacheKeys
from storefront.cache.local import LocalTiers
from storefront.cache.service import CacheService
from storefront.cache.warmer import CacheWarmer
from storefront.errors import WarmAbortedError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/cache", tags=["cache"])

_MAX_PATTERN_LENGTH = 256


def _validate_pattern(pattern: str) -> str:
    """Only patterns inside one of our key domains may be deleted."""
    cleaned = pattern.strip()
    if not cleaned:
        raise BadRequestError("Pattern must not be empty")
    if len(cleaned) > _MAX_PATTERN_LENGTH:
        raise BadRequestError("Pattern is too long")
    if not CacheKeys.is_known_pattern(cleaned):
        prefixes = ", ".join(sorted(CacheKeys.PREFIXES.values()))
        raise BadRequestError(f"Pattern must start with a cache key prefix ({prefixes})")
    return cleaned


class InvalidationResult(BaseModel):
    """Outcome of an invalidation request."""

    success: bool
    target: str


# -----------------------------------------------------------------------------
# Warming
# -----------------------------------------------------------------------------


@router.post("/warm")
async def warm_cache(warmer: Annotated[CacheWarmer, Depends(get_warmer)]) -> ORJSONResponse:
    """Run one warm pass.

    Returns 200 when everything was warmed, 207 when some dimensions failed
    and 500 when nothing could be warmed.
    """
    try:
        report = await warmer.run()
    except WarmAbortedError as e:
        return ORJSONResponse(
            status_code=500,
            content={"success": False, "error": "Cache warming failed", "details": str(e)},
        )
    return ORJSONResponse(status_code=report.status_code, content=report.to_dict())


@router.get("/warm")
async def warm_usage() -> dict[str, str]:
    return {"message": "Cache warming endpoint", "usage": "POST to warm all caches"}


# -----------------------------------------------------------------------------
# Invalidation
# -----------------------------------------------------------------------------


@router.post("/invalidate/products/{slug}", response_model=InvalidationResult)
async def invalidate_product(
    slug: str, cache: Annotated[CacheService, Depends(get_cache_service)]
) -> InvalidationResult:
    """Drop a product and all listing pages after it changed."""
    success = await cache.invalidate_product(slug)
    logger.info(f"Invalidated product {slug} (success={success})")
    return InvalidationResult(success=success, target=CacheKeys.product(slug))


@router.post("/invalidate/categories", response_model=InvalidationResult)
async def invalidate_categories(
    cache: Annotated[CacheService, Depends(get_cache_service)],
    tiers: Annotated[LocalTiers, Depends(get_local_tiers)],
) -> InvalidationResult:
    """Drop both category keys and this process's local category tiers."""
    tiers.clear()
    success = await cache.invalidate_categories()
    return InvalidationResult(
        success=success,
        target=f"{CacheKeys.category_list()},{CacheKeys.category_options()}",
    )


@router.post("/invalidate/ratings", response_model=InvalidationResult)
async def invalidate_ratings(
    cache: Annotated[CacheService, Depends(get_cache_service)],
    product_id: str | None = None,
) -> InvalidationResult:
    success = await cache.invalidate_ratings(product_id)
    return InvalidationResult(success=success, target=CacheKeys.ratings(product_id))


@router.delete("/keys", response_model=InvalidationResult)
async def delete_keys(
    cache: Annotated[CacheService, Depends(get_cache_service)],
    pattern: Annotated[str, Query(description="Glob pattern, e.g. products:*")],
) -> InvalidationResult:
    """Delete every key matching a pattern."""
    pattern = _validate_pattern(pattern)
    success = await cache.delete_pattern(pattern)
    logger.info(f"Deleted keys matching {pattern} (success={success})")
    return InvalidationResult(success=success, target=pattern)


# -----------------------------------------------------------------------------
# User caches
# -----------------------------------------------------------------------------


@router.get("/users/{user_id}")
async def user_cache_stats(
    user_id: str, cache: Annotated[CacheService, Depends(get_cache_service)]
) -> dict[str, Any]:
    """Which of a user's cached domains exist, and their remaining TTLs."""
    return {"user_id": user_id, "domains": await cache.stats_for_user(user_id)}


@router.delete("/users/{user_id}", response_model=InvalidationResult)
async def clear_user_cache(
    user_id: str, cache: Annotated[CacheService, Depends(get_cache_service)]
) -> InvalidationResult:
    success = await cache.clear_user(user_id)
    return InvalidationResult(success=success, target=f"user:*:{user_id}")
