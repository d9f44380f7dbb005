"""Process-local memory tier.

Holds the last value fetched for one hot read path (e.g. the category list)
so requests inside a short window skip Redis entirely. Each process has its
own copy; copies across processes may disagree for up to ``ttl`` seconds.
The tier is never authoritative and can be cleared at any time.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable

from storefront.config import settings


class LocalMemoryTier:
    """Single-value cache with a freshness window."""

    def __init__(
        self,
        name: str,
        ttl: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl <= 0:
            raise ValueError("Local tier TTL must be positive")
        self.name = name
        self.ttl = ttl
        self._clock = clock
        self._value: Any = None
        self._stored_at: float | None = None

    def read(self) -> Any | None:
        """Return the held value if still inside the window, else None."""
        if self._stored_at is None:
            return None
        if self._clock() - self._stored_at >= self.ttl:
            return None
        return self._value

    def write(self, value: Any) -> None:
        """Replace the held value and restart the window."""
        if value is None:
            return
        self._value = value
        self._stored_at = self._clock()

    def clear(self) -> None:
        self._value = None
        self._stored_at = None

    @property
    def age(self) -> float | None:
        """Seconds since the last write, or None if empty."""
        if self._stored_at is None:
            return None
        return self._clock() - self._stored_at


@dataclass
class LocalTiers:
    """The local tiers owned by one process, built once at startup."""

    category_list: LocalMemoryTier
    category_options: LocalMemoryTier

    @classmethod
    def from_settings(cls) -> LocalTiers:
        return cls(
            category_list=LocalMemoryTier("category_list", settings.local_ttl_category_list),
            category_options=LocalMemoryTier(
                "category_options", settings.local_ttl_category_options
            ),
        )

    def clear(self) -> None:
        self.category_list.clear()
        self.category_options.clear()
