"""
Shared metrics configuration for the Employee Platform.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry, generate_latest
from typing import Dict, Any, Optional, Sequence


class MetricsCollector:
    """Prometheus metrics for one service, held in the collector's own registry."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        # A registry per collector lets tests build a service more than once per process
        self.registry = registry or CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _counter(self, name: str, documentation: str, labels: Sequence[str] = ()):
        self._metrics[name] = Counter(name, documentation, list(labels), registry=self.registry)

    def _gauge(self, name: str, documentation: str, labels: Sequence[str] = ()):
        self._metrics[name] = Gauge(name, documentation, list(labels), registry=self.registry)

    def _setup_metrics(self):
        """Set up metrics every service exposes."""
        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": self.service_name, "version": "1.0.0"})
        self._metrics["service_info"] = info

        self._counter("http_requests_total", "Total HTTP requests", ["method", "endpoint", "status_code"])
        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )
        self._counter("health_check_total", "Total health check requests", ["status"])
        self._counter("errors_total", "Total errors", ["error_type", "service"])
        self._counter("business_events_total", "Total business events", ["event_type", "service"])

        if self.service_name == "employees":
            self._setup_employees_metrics()
        elif self.service_name == "notifications":
            self._setup_notifications_metrics()

    def _setup_employees_metrics(self):
        """Read-through cache and publish counters."""
        self._counter("cache_hits_total", "Reads served from the shared cache", ["cache_type"])
        self._counter("cache_misses_total", "Reads that fell through to the record store", ["cache_type"])
        self._counter("events_published_total", "Domain events handed to the event bus", ["event_type", "status"])

    def _setup_notifications_metrics(self):
        """Subscriber counters and state."""
        self._counter("events_processed_total", "Domain events dispatched to a handler", ["event_type"])
        self._counter("event_decode_errors_total", "Undecodable event payloads skipped")
        self._counter("subscriber_reconnects_total", "Event bus connect attempts after a failure")
        self._gauge("subscriber_state", "Event subscriber state (1 for the current state)", ["state"])

    def export(self) -> bytes:
        """Render the registry in Prometheus text format."""
        return generate_latest(self.registry)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method, endpoint=endpoint, status_code=str(status_code)
        ).inc()
        self._metrics["http_request_duration_seconds"].labels(method=method, endpoint=endpoint).observe(duration)

    def record_health_check(self, status: str):
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        self._metrics["errors_total"].labels(error_type=error_type, service=service or self.service_name).inc()

    def record_business_event(self, event_type: str, service: Optional[str] = None):
        self._metrics["business_events_total"].labels(
            event_type=event_type, service=service or self.service_name
        ).inc()

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter; names this service does not define are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).inc()

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge; names this service does not define are ignored."""
        metric = self._metrics.get(metric_name)
        if metric is not None:
            (metric.labels(**labels) if labels else metric).set(value)

    def get_sample(self, metric_name: str, **labels) -> float:
        """Read back a sample value (counters are reported under their _total name)."""
        value = self.registry.get_sample_value(metric_name, labels or None)
        return value or 0.0


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)
