"""Tests for Prometheus metrics."""

from unittest.mock import MagicMock

import pytest

from storefront.observability import metrics as metrics_module
from storefront.observability.metrics import (
    MetricsMiddleware,
    MetricsRegistry,
    record_cache_hit,
    record_warm_run,
)


@pytest.fixture
def registry(monkeypatch: pytest.MonkeyPatch) -> MetricsRegistry:
    """A fresh registry installed as the global one."""
    fresh = MetricsRegistry()
    fresh.initialize()
    monkeypatch.setattr(metrics_module, "metrics_registry", fresh)
    return fresh


class TestMetricsRegistry:
    def test_separate_registries_do_not_collide(self) -> None:
        """Each registry owns its collectors, so two can coexist."""
        first = MetricsRegistry()
        second = MetricsRegistry()
        first.initialize()
        second.initialize()

        assert b"storefront_cache_hits_total" in first.generate_latest()
        assert b"storefront_cache_hits_total" in second.generate_latest()

    def test_records_cache_hits(self, registry: MetricsRegistry) -> None:
        record_cache_hit("memory", "category_list")
        record_cache_hit("memory", "category_list")

        output = registry.generate_latest().decode()
        assert 'storefront_cache_hits_total{tier="memory",domain="category_list"} 2.0' in output

    def test_records_warm_run(self, registry: MetricsRegistry) -> None:
        record_warm_run(42, ["ratings", "products combo", "products combo"])

        output = registry.generate_latest().decode()
        assert "storefront_warm_keys_total 42.0" in output
        assert 'storefront_warm_errors_total{dimension="products combo"} 2.0' in output

    def test_disabled_metrics(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(metrics_module.settings, "enable_metrics", False)
        disabled = MetricsRegistry()
        disabled.initialize()

        assert disabled.cache_hits_total is None
        assert disabled.generate_latest() == b"# Metrics disabled\n"


class TestPathNormalization:
    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("/api/products", "/api/products"),
            ("/api/products/blue-shirt", "/api/products/{slug}"),
            ("/api/cache/invalidate/products/blue-shirt", "/api/cache/invalidate/products/{slug}"),
            ("/api/categories/options", "/api/categories/options"),
        ],
    )
    def test_normalize(self, path: str, expected: str) -> None:
        middleware = MetricsMiddleware(MagicMock())
        assert middleware._normalize_path(path) == expected
