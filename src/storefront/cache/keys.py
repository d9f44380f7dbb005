"""Cache key schema for the storefront.

Key format: {domain_prefix}:{part}:{part}...

Where:
- domain_prefix: one per :class:`CacheDomain` ("product", "products",
  "categories:list", "user:orders", ...)
- parts: every parameter that changes the cached value, in a fixed order

Listing keys spell out each listing parameter, e.g.
``products:lt_12:pg_1:cat_all:feat_false:sortb_default:sorto_desc``.
Key construction is pure: equal inputs always give byte-identical keys.
"""

from __future__ import annotations

from storefront.cache.policy import CacheDomain
from storefront.catalog.query import ProductListQuery

# Domains whose key is the bare prefix, with no further parts
_SINGLETON_DOMAINS = frozenset({CacheDomain.CATEGORY_LIST, CacheDomain.CATEGORY_OPTIONS})


class CacheKeys:
    """Cache key generator following consistent naming convention."""

    SEPARATOR = ":"

    PREFIXES: dict[CacheDomain, str] = {
        CacheDomain.PRODUCT: "product",
        CacheDomain.PRODUCT_LIST: "products",
        CacheDomain.CATEGORY_LIST: "categories:list",
        CacheDomain.CATEGORY_OPTIONS: "categories:options",
        CacheDomain.RATINGS: "ratings",
        CacheDomain.WISHLIST: "user:wishlist",
        CacheDomain.ORDERS: "user:orders",
        CacheDomain.ORDER_DETAILS: "user:order",
        CacheDomain.PROFILE: "user:profile",
        CacheDomain.ADDRESSES: "user:addresses",
    }

    @classmethod
    def build(cls, domain: CacheDomain, *parts: object) -> str:
        """Key for a domain and its key parts."""
        prefix = cls.PREFIXES[domain]
        if domain in _SINGLETON_DOMAINS:
            if parts:
                raise ValueError(f"{domain.value} keys take no parts")
            return prefix
        if not parts:
            raise ValueError(f"{domain.value} keys need at least one part")
        for part in parts:
            if part is None or str(part) == "":
                raise ValueError(f"Empty key part for {domain.value}")
        return cls.SEPARATOR.join([prefix, *(str(part) for part in parts)])

    # -------------------------------------------------------------------------
    # Catalog keys
    # -------------------------------------------------------------------------

    @classmethod
    def product(cls, slug: str) -> str:
        """Key for a single product."""
        return cls.build(CacheDomain.PRODUCT, slug)

    @classmethod
    def product_list(cls, query: ProductListQuery) -> str:
        """Key for one page of the product listing."""
        return cls.build(CacheDomain.PRODUCT_LIST, *query.key_parts())

    @classmethod
    def category_list(cls) -> str:
        return cls.build(CacheDomain.CATEGORY_LIST)

    @classmethod
    def category_options(cls) -> str:
        return cls.build(CacheDomain.CATEGORY_OPTIONS)

    @classmethod
    def ratings_parts(cls, product_slug: str | None = None) -> tuple[str, ...]:
        """Key parts for all ratings or one product's ratings."""
        return ("product", product_slug) if product_slug else ("all",)

    @classmethod
    def ratings(cls, product_slug: str | None = None) -> str:
        return cls.build(CacheDomain.RATINGS, *cls.ratings_parts(product_slug))

    # -------------------------------------------------------------------------
    # User keys
    # -------------------------------------------------------------------------

    @classmethod
    def orders_parts(cls, user_id: str, filters: str | None = None) -> tuple[str, ...]:
        return (user_id, "list", filters or "default")

    @classmethod
    def user_key(cls, domain: CacheDomain, user_id: str, suffix: str | None = None) -> str:
        """Key for user-scoped data (wishlist, profile, order details...)."""
        if domain == CacheDomain.ORDERS:
            return cls.build(domain, *cls.orders_parts(user_id, suffix))
        if suffix:
            return cls.build(domain, user_id, suffix)
        return cls.build(domain, user_id)

    # -------------------------------------------------------------------------
    # Patterns
    # -------------------------------------------------------------------------

    @classmethod
    def domain_pattern(cls, domain: CacheDomain) -> str:
        """Glob matching every key of a multi-key domain."""
        return f"{cls.PREFIXES[domain]}{cls.SEPARATOR}*"

    @classmethod
    def user_patterns(cls, user_id: str) -> list[str]:
        """Globs and keys covering all cached data of one user."""
        return [
            cls.user_key(CacheDomain.WISHLIST, user_id),
            f"{cls.PREFIXES[CacheDomain.ORDERS]}:{user_id}:*",
            f"{cls.PREFIXES[CacheDomain.ORDER_DETAILS]}:{user_id}:*",
            cls.user_key(CacheDomain.PROFILE, user_id),
            cls.user_key(CacheDomain.ADDRESSES, user_id),
        ]

    @classmethod
    def is_known_pattern(cls, pattern: str) -> bool:
        """True if a glob is scoped to one of our domain prefixes."""
        return any(
            pattern == prefix or pattern.startswith(f"{prefix}{cls.SEPARATOR}")
            for prefix in cls.PREFIXES.values()
        )

    @classmethod
    def parse_key(cls, key: str) -> dict[str, object] | None:
        """Split a key into its domain and parts.

        Returns None if the key doesn't belong to any known domain.
        """
        # Longest prefix first so "categories:list" beats a shorter match
        for domain, prefix in sorted(cls.PREFIXES.items(), key=lambda kv: -len(kv[1])):
            if key == prefix:
                return {"domain": domain, "parts": []}
            if key.startswith(prefix + cls.SEPARATOR):
                rest = key[len(prefix) + 1 :]
                return {"domain": domain, "parts": rest.split(cls.SEPARATOR)}
        return None
