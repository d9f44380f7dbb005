"""Per-domain TTL policy.

Every write for a domain goes through :meth:`TtlPolicy.ttl_for`, so a domain
expires the same way whether the request path or the warmer wrote it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType

logger = logging.getLogger(__name__)


class CacheDomain(str, Enum):
    """Logical kind of cached data."""

    WISHLIST = "wishlist"
    ORDERS = "orders"
    ORDER_DETAILS = "order_details"
    PROFILE = "profile"
    ADDRESSES = "addresses"
    PRODUCT = "product"
    PRODUCT_LIST = "product_list"
    CATEGORY_LIST = "category_list"
    CATEGORY_OPTIONS = "category_options"
    RATINGS = "ratings"


USER_DOMAINS: tuple[CacheDomain, ...] = (
    CacheDomain.WISHLIST,
    CacheDomain.ORDERS,
    CacheDomain.ORDER_DETAILS,
    CacheDomain.PROFILE,
    CacheDomain.ADDRESSES,
)

DEFAULT_TTLS: Mapping[CacheDomain, int] = MappingProxyType(
    {
        CacheDomain.WISHLIST: 1800,  # 30 min
        CacheDomain.ORDERS: 900,  # 15 min
        CacheDomain.ORDER_DETAILS: 600,  # 10 min
        CacheDomain.PROFILE: 3600,  # 1 hour
        CacheDomain.ADDRESSES: 1800,  # 30 min
        CacheDomain.PRODUCT: 1800,  # 30 min
        CacheDomain.PRODUCT_LIST: 1800,  # 30 min
        CacheDomain.CATEGORY_LIST: 3600,  # 1 hour
        CacheDomain.CATEGORY_OPTIONS: 7200,  # 2 hours
        CacheDomain.RATINGS: 900,  # 15 min
    }
)


class TtlPolicy:
    """Static domain -> TTL mapping, fixed at construction."""

    def __init__(self, overrides: Mapping[str, int] | None = None):
        ttls = dict(DEFAULT_TTLS)
        for name, seconds in (overrides or {}).items():
            try:
                domain = CacheDomain(name)
            except ValueError:
                logger.warning(f"Ignoring TTL override for unknown cache domain: {name}")
                continue
            if seconds <= 0:
                raise ValueError(f"TTL for {name} must be positive, got {seconds}")
            ttls[domain] = int(seconds)
        self._ttls: Mapping[CacheDomain, int] = MappingProxyType(ttls)

    def ttl_for(self, domain: CacheDomain) -> int:
        return self._ttls[domain]

    def stale_threshold(self, domain: CacheDomain, fraction: float) -> int:
        """Remaining-TTL seconds below which an entry counts as stale."""
        return int(self._ttls[domain] * fraction)

    def as_dict(self) -> dict[str, int]:
        return {domain.value: ttl for domain, ttl in self._ttls.items()}
