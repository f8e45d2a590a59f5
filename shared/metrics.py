"""
Prometheus metrics for the Workflow Gateway.
"""

from typing import Any, Dict, Optional, Sequence, Tuple

from prometheus_client import CollectorRegistry, Counter, Histogram, Info

# name -> (type, help, labels)
COMMON_METRICS: Dict[str, Tuple[type, str, Sequence[str]]] = {
    "http_requests_total": (Counter, "Total HTTP requests", ("method", "endpoint", "status_code")),
    "http_request_duration_seconds": (Histogram, "HTTP request duration in seconds", ("method", "endpoint")),
    "health_check_total": (Counter, "Total health check requests", ("status",)),
    "errors_total": (Counter, "Total errors", ("error_type", "service")),
}

GATEWAY_METRICS: Dict[str, Tuple[type, str, Sequence[str]]] = {
    "workflow_executions_total": (Counter, "Workflow executions by outcome", ("status",)),
    "upstream_request_duration_seconds": (Histogram, "Upstream workflow API call duration in seconds", ()),
    "audit_write_failures_total": (Counter, "Execution records that could not be persisted", ()),
}

SERVICE_METRICS = {
    "workflow_gateway": GATEWAY_METRICS,
}


class MetricsCollector:
    """Metrics of one service.

    Each collector owns its registry so several service instances (tests,
    embedded apps) can coexist in one process without duplicate series.
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None,
                 version: str = "1.0.0"):
        self.service_name = service_name
        self.registry = registry if registry is not None else CollectorRegistry()
        self._metrics: Dict[str, Any] = {}

        info = Info("service_info", "Service information", registry=self.registry)
        info.info({"service": service_name, "version": version})
        self._metrics["service_info"] = info

        definitions = dict(COMMON_METRICS)
        definitions.update(SERVICE_METRICS.get(service_name, {}))
        for name, (metric_type, documentation, labels) in definitions.items():
            self._metrics[name] = metric_type(name, documentation, list(labels), registry=self.registry)

    def _child(self, name: str, labels: Dict[str, Any]):
        metric = self._metrics.get(name)
        if metric is None:
            return None
        return metric.labels(**{key: str(value) for key, value in labels.items()}) if labels else metric

    def increment_counter(self, metric_name: str, **labels):
        """Increment a counter; unknown names are ignored."""
        child = self._child(metric_name, labels)
        if child is not None:
            child.inc()

    def observe(self, metric_name: str, value: float, **labels):
        """Observe a histogram value; unknown names are ignored."""
        child = self._child(metric_name, labels)
        if child is not None:
            child.observe(value)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        self.increment_counter("http_requests_total", method=method, endpoint=endpoint, status_code=status_code)
        self.observe("http_request_duration_seconds", duration, method=method, endpoint=endpoint)

    def record_health_check(self, status: str):
        self.increment_counter("health_check_total", status=status)

    def record_error(self, error_type: str, service: Optional[str] = None):
        self.increment_counter("errors_total", error_type=error_type, service=service or self.service_name)


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Create the metrics collector of a service."""
    return MetricsCollector(service_name, registry)
