"""Observability for the storefront cache.

Provides metrics and structured logging:
- Prometheus metrics for cache tiers and warm runs
- Request/response instrumentation
- JSON structured logging with request and warm-run correlation
"""

from storefront.observability.logging import (
    LogContext,
    configure_logging,
    request_id_var,
    warm_run_id_var,
)
from storefront.observability.metrics import (
    MetricsMiddleware,
    get_metrics,
    metrics_registry,
)

__all__ = [
    # Logging
    "configure_logging",
    "LogContext",
    "request_id_var",
    "warm_run_id_var",
    # Metrics
    "metrics_registry",
    "get_metrics",
    "MetricsMiddleware",
]
