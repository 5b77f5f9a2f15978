"""
Prometheus metrics for the bundle service.

Each collector owns its CollectorRegistry, so several service instances
(one per test, for example) can live in one process without clashing.
"""

from typing import Any, Dict, Optional, Sequence, Tuple, Type

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, Info
from prometheus_client.metrics import MetricWrapperBase

BUILD_DURATION_BUCKETS = (0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0)

# name -> (type, help, labels)
METRIC_DEFINITIONS: Dict[str, Tuple[Type[MetricWrapperBase], str, Sequence[str]]] = {
    "http_requests_total": (Counter, "Total HTTP requests", ("method", "endpoint", "status_code")),
    "http_request_duration_seconds": (Histogram, "HTTP request duration in seconds", ("method", "endpoint")),
    "health_check_total": (Counter, "Total health check requests", ("status",)),
    "errors_total": (Counter, "Errors answered to clients, by error code", ("error_type", "service")),
    "bundle_cache_hits_total": (Counter, "Bundle requests served from the cache store", ("ecosystem",)),
    "bundle_cache_misses_total": (Counter, "Bundle requests not found in the cache store", ("ecosystem",)),
    "bundle_coalesced_total": (Counter, "Bundle requests that joined an in-flight build", ("ecosystem",)),
    "bundle_builds_total": (Counter, "Bundle builds finished, by outcome", ("outcome",)),
    "bundle_build_duration_seconds": (Histogram, "Bundle build duration in seconds", ("outcome",)),
    "bundle_builds_in_flight": (Gauge, "Bundle builds currently running", ()),
    "registry_redirects_total": (Counter, "Requests redirected to a canonical version", ()),
}


class MetricsCollector:
    """Owns the service's metrics and records into them by name."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        for name, (metric_type, documentation, labels) in METRIC_DEFINITIONS.items():
            kwargs = {"buckets": BUILD_DURATION_BUCKETS} if name == "bundle_build_duration_seconds" else {}
            self._metrics[name] = metric_type(name, documentation, labels, registry=self.registry, **kwargs)

        Info("service", "Service information", registry=self.registry).info(
            {"service": service_name, "version": "1.0.0"}
        )

    def _child(self, metric_name: str, labels: Dict[str, Any]):
        metric = self._metrics[metric_name]
        return metric.labels(**labels) if labels else metric

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self._child("http_requests_total", {"method": method, "endpoint": endpoint, "status_code": str(status_code)}).inc()
        self._child("http_request_duration_seconds", {"method": method, "endpoint": endpoint}).observe(duration)

    def record_health_check(self, status: str):
        self._child("health_check_total", {"status": status}).inc()

    def record_error(self, error_type: str):
        self._child("errors_total", {"error_type": error_type, "service": self.service_name}).inc()

    def increment_counter(self, metric_name: str, **labels):
        self._child(metric_name, labels).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        self._child(metric_name, labels).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        self._child(metric_name, labels).observe(value)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Create the metrics collector for a service."""
    return MetricsCollector(service_name, registry)
