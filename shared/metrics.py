"""
Shared metrics configuration for the Relief Intelligence Layer.
"""

from prometheus_client import Counter, Histogram, Gauge, Info, CollectorRegistry
from typing import Dict, Any, Optional
import time
from contextlib import contextmanager


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        if self.service_name == "enrichment":
            self._setup_enrichment_metrics()
        elif self.service_name == "relay":
            self._setup_relay_metrics()

    def _setup_enrichment_metrics(self):
        """Set up enrichment-specific metrics."""
        self._metrics["cache_hits_total"] = Counter(
            "cache_hits_total",
            "Total cache hits",
            ["namespace"],
            registry=self.registry
        )

        self._metrics["cache_misses_total"] = Counter(
            "cache_misses_total",
            "Total cache misses",
            ["namespace"],
            registry=self.registry
        )

        self._metrics["strategy_outcomes_total"] = Counter(
            "strategy_outcomes_total",
            "Resolution strategy attempts by outcome",
            ["resolver", "provider", "outcome"],
            registry=self.registry
        )

        self._metrics["resolve_duration_seconds"] = Histogram(
            "resolve_duration_seconds",
            "Resolver duration in seconds",
            ["resolver"],
            registry=self.registry
        )

        self._metrics["cache_sweeps_total"] = Counter(
            "cache_sweeps_total",
            "Total cache sweeps",
            ["status"],
            registry=self.registry
        )

        self._metrics["cache_entries_swept_total"] = Counter(
            "cache_entries_swept_total",
            "Total expired cache entries removed by sweeps",
            registry=self.registry
        )

        self._metrics["relay_notifications_total"] = Counter(
            "relay_notifications_total",
            "Realtime notifications sent to the relay",
            ["event", "status"],
            registry=self.registry
        )

    def _setup_relay_metrics(self):
        """Set up relay-specific metrics."""
        self._metrics["online_connections"] = Gauge(
            "online_connections",
            "Number of connected realtime clients",
            registry=self.registry
        )

        self._metrics["active_rooms"] = Gauge(
            "active_rooms",
            "Number of rooms with at least one member",
            registry=self.registry
        )

        self._metrics["events_ingested_total"] = Counter(
            "events_ingested_total",
            "Events accepted on the ingestion endpoint",
            ["event"],
            registry=self.registry
        )

        self._metrics["messages_delivered_total"] = Counter(
            "messages_delivered_total",
            "Messages delivered to room members",
            ["event"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    @contextmanager
    def time_operation(self, operation_name: str, **labels):
        """Context manager to time an operation."""
        start_time = time.time()
        try:
            yield
        finally:
            duration = time.time() - start_time
            if operation_name in self._metrics:
                self._labelled(operation_name, labels).observe(duration)

    def increment_counter(self, metric_name: str, amount: float = 1, **labels):
        """Increment a counter metric."""
        if metric_name in self._metrics:
            self._labelled(metric_name, labels).inc(amount)

    def set_gauge(self, metric_name: str, value: float, **labels):
        """Set a gauge metric value."""
        if metric_name in self._metrics:
            self._labelled(metric_name, labels).set(value)

    def observe_histogram(self, metric_name: str, value: float, **labels):
        """Observe a histogram metric."""
        if metric_name in self._metrics:
            self._labelled(metric_name, labels).observe(value)

    def _labelled(self, metric_name: str, labels: Dict[str, Any]):
        metric = self._metrics[metric_name]
        # Unlabelled metrics reject .labels()
        return metric.labels(**labels) if labels else metric


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service."""
    return MetricsCollector(service_name, registry)

