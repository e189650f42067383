"""
Shared metrics configuration for the schema cache layer.
"""

from typing import Any, Dict, Optional
import threading

from prometheus_client import CollectorRegistry, Counter, Histogram


class MetricsCollector:
    """Prometheus metrics for cache reads, refreshes and store failures."""

    def __init__(self, component: str = "cache", registry: Optional[CollectorRegistry] = None):
        self.component = component
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._lock = threading.Lock()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up cache metrics."""
        self._metrics["cache_requests_total"] = Counter(
            "cache_requests_total",
            "Cache reads by classification",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["cache_background_refresh_total"] = Counter(
            "cache_background_refresh_total",
            "Background stale-while-revalidate refreshes",
            ["result"],
            registry=self.registry
        )

        self._metrics["cache_compute_duration_seconds"] = Histogram(
            "cache_compute_duration_seconds",
            "Duration of compute calls made on behalf of the cache",
            ["mode"],
            registry=self.registry
        )

        self._metrics["cache_client_errors_total"] = Counter(
            "cache_client_errors_total",
            "Backing store failures",
            ["operation"],
            registry=self.registry
        )

        self._metrics["cache_invalidated_keys_total"] = Counter(
            "cache_invalidated_keys_total",
            "Keys removed through invalidation",
            ["kind"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def increment_counter(self, metric_name: str, amount: float = 1.0, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            with self._lock:
                self._metrics[metric_name].labels(**labels).inc(amount)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._metrics[metric_name].labels(**labels).observe(value)

    def sample_value(self, metric_name: str, **labels) -> Optional[float]:
        """Read back a sample by its exposed name, e.g. ``cache_requests_total``."""
        return self.registry.get_sample_value(metric_name, labels)


def get_metrics_collector(component: str = "cache", registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a component."""
    return MetricsCollector(component, registry)
