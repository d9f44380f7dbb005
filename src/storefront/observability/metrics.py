"""Prometheus metrics for the storefront cache.

Provides metrics collection and exposure:
- HTTP request metrics (latency, count)
- Cache metrics per tier and domain (hits, misses, timeouts, failed writes)
- Cache operation latency
- Cache warming results

Usage:
    from storefront.observability.metrics import get_metrics

    metrics = get_metrics()
    metrics.cache_hits_total.labels(tier="redis", domain="product").inc()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

from prometheus_client import CollectorRegistry, Counter, Histogram, generate_latest
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from storefront.config import settings

if TYPE_CHECKING:
    from starlette.types import ASGIApp

logger = logging.getLogger(__name__)


@dataclass
class MetricsRegistry:
    """Registry for Prometheus metrics."""

    # HTTP metrics
    http_requests_total: Any = None
    http_request_duration_seconds: Any = None

    # Cache metrics
    cache_hits_total: Any = None
    cache_misses_total: Any = None
    cache_lookup_timeouts_total: Any = None
    cache_write_failures_total: Any = None
    cache_operation_duration_seconds: Any = None

    # Warming metrics
    warm_keys_total: Any = None
    warm_errors_total: Any = None

    # Internal state
    _initialized: bool = field(default=False, repr=False)
    _registry: CollectorRegistry | None = field(default=None, repr=False)

    def initialize(self) -> None:
        """Initialize Prometheus metrics."""
        if self._initialized:
            return

        if not settings.enable_metrics:
            logger.info("Metrics are disabled")
            self._initialized = True
            return

        self._registry = CollectorRegistry()
        registry = self._registry

        self.http_requests_total = Counter(
            "storefront_http_requests_total",
            "Total HTTP requests",
            ["method", "path", "status"],
            registry=registry,
        )
        self.http_request_duration_seconds = Histogram(
            "storefront_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["method", "path"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
            registry=registry,
        )

        self.cache_hits_total = Counter(
            "storefront_cache_hits_total",
            "Cache hits",
            ["tier", "domain"],
            registry=registry,
        )
        self.cache_misses_total = Counter(
            "storefront_cache_misses_total",
            "Reads that fell through to the catalog source",
            ["domain"],
            registry=registry,
        )
        self.cache_lookup_timeouts_total = Counter(
            "storefront_cache_lookup_timeouts_total",
            "Redis lookups abandoned after the lookup timeout",
            ["domain"],
            registry=registry,
        )
        self.cache_write_failures_total = Counter(
            "storefront_cache_write_failures_total",
            "Failed cache writes",
            ["domain"],
            registry=registry,
        )
        self.cache_operation_duration_seconds = Histogram(
            "storefront_cache_operation_duration_seconds",
            "Cache operation latency in seconds",
            ["operation"],
            buckets=(0.0005, 0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.3, 1.0),
            registry=registry,
        )

        self.warm_keys_total = Counter(
            "storefront_warm_keys_total",
            "Keys populated by cache warming",
            registry=registry,
        )
        self.warm_errors_total = Counter(
            "storefront_warm_errors_total",
            "Cache warming dimension failures",
            ["dimension"],
            registry=registry,
        )

        self._initialized = True
        logger.info("Prometheus metrics initialized")

    def generate_latest(self) -> bytes:
        """Generate Prometheus metrics in exposition format."""
        if not settings.enable_metrics or self._registry is None:
            return b"# Metrics disabled\n"
        return generate_latest(self._registry)


# Global metrics registry
metrics_registry = MetricsRegistry()


def get_metrics() -> MetricsRegistry:
    """Get the global metrics registry.

    Initializes metrics on first access.
    """
    if not metrics_registry._initialized:
        metrics_registry.initialize()
    return metrics_registry


class MetricsMiddleware(BaseHTTPMiddleware):
    """Middleware for HTTP request metrics."""

    # Path segments followed by a free-form identifier
    _ID_SEGMENTS = {"products": "{slug}"}

    def __init__(self, app: "ASGIApp") -> None:
        super().__init__(app)
        self.metrics = get_metrics()

    async def dispatch(self, request: Request, call_next: Callable[[Request], Any]) -> Response:
        """Record metrics for HTTP requests."""
        # Skip metrics for health and metrics endpoints
        if request.url.path.startswith("/health") or request.url.path == "/metrics":
            return await call_next(request)

        method = request.method
        path = self._normalize_path(request.url.path)
        start_time = time.perf_counter()
        status_code = 500  # Default in case of exception

        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            duration = time.perf_counter() - start_time
            if self.metrics.http_requests_total:
                self.metrics.http_requests_total.labels(
                    method=method, path=path, status=status_code
                ).inc()
            if self.metrics.http_request_duration_seconds:
                self.metrics.http_request_duration_seconds.labels(
                    method=method, path=path
                ).observe(duration)

    def _normalize_path(self, path: str) -> str:
        """Replace identifiers with placeholders to bound label cardinality.

        Examples:
            /api/products/blue-shirt -> /api/products/{slug}
            /api/products            -> /api/products
        """
        parts = path.strip("/").split("/")
        normalized: list[str] = []
        i = 0
        while i < len(parts):
            part = parts[i]
            normalized.append(part)
            placeholder = self._ID_SEGMENTS.get(part)
            if placeholder and i + 1 < len(parts):
                normalized.append(placeholder)
                i += 1
            i += 1
        return "/" + "/".join(normalized) if normalized else path


def record_cache_hit(tier: str, domain: str) -> None:
    """Record a hit in the memory or redis tier."""
    metrics = get_metrics()
    if metrics.cache_hits_total:
        metrics.cache_hits_total.labels(tier=tier, domain=domain).inc()


def record_cache_miss(domain: str) -> None:
    metrics = get_metrics()
    if metrics.cache_misses_total:
        metrics.cache_misses_total.labels(domain=domain).inc()


def record_lookup_timeout(domain: str) -> None:
    metrics = get_metrics()
    if metrics.cache_lookup_timeouts_total:
        metrics.cache_lookup_timeouts_total.labels(domain=domain).inc()


def record_write_failure(domain: str) -> None:
    metrics = get_metrics()
    if metrics.cache_write_failures_total:
        metrics.cache_write_failures_total.labels(domain=domain).inc()


def record_cache_operation(operation: str, duration: float) -> None:
    """Record cache operation duration.

    Args:
        operation: Cache operation (get, get_with_ttl, set, delete, delete_pattern)
        duration: Operation duration in seconds
    """
    metrics = get_metrics()
    if metrics.cache_operation_duration_seconds:
        metrics.cache_operation_duration_seconds.labels(operation=operation).observe(duration)


def record_warm_run(keys_warmed: int, error_dimensions: list[str]) -> None:
    """Record the outcome of a warm run."""
    metrics = get_metrics()
    if metrics.warm_keys_total:
        metrics.warm_keys_total.inc(keys_warmed)
    if metrics.warm_errors_total:
        for dimension in error_dimensions:
            metrics.warm_errors_total.labels(dimension=dimension).inc()
