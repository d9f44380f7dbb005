"""Domain exceptions for the catalog cache.

Cache-level problems (misses, timeouts, failed writes) are never raised to
callers. Only failures of the source of record and a warm run that cannot
start are exceptions.
"""

from __future__ import annotations


class StorefrontError(Exception):
    """Base class for storefront errors."""


class CatalogSourceError(StorefrontError):
    """The catalog source of record could not answer a query."""

    def __init__(self, operation: str, reason: str):
        self.operation = operation
        self.reason = reason
        super().__init__(f"{operation} failed: {reason}")


class WarmAbortedError(StorefrontError):
    """A warm run could not start at all (e.g. the catalog source is down)."""
