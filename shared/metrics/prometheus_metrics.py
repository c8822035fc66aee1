"""Prometheus metrics definitions and helpers.

Provides the HTTP metric set recorded by the request logging middleware.
"""

from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


class HTTPMetrics:
    """HTTP request metrics for one application instance."""

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        """Initialize HTTP metrics.

        Args:
            registry: Prometheus registry to use. A private registry is
                created when omitted so several apps can coexist in one
                process.
        """
        self.registry = registry if registry is not None else CollectorRegistry()

        self.requests_total = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status"],
            registry=self.registry,
        )

        self.request_duration = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            buckets=[0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
            registry=self.registry,
        )

        self.requests_in_progress = Gauge(
            "http_requests_in_progress",
            "HTTP requests currently in progress",
            ["method"],
            registry=self.registry,
        )

        self.database_connected = Gauge(
            "database_connected",
            "1 when the MongoDB connection is established",
            registry=self.registry,
        )

    def observe_request(self, method: str, endpoint: str, status: int, duration: float) -> None:
        """Record a completed request.

        Args:
            method: HTTP method
            endpoint: Route template, or the raw path for unmatched requests
            status: Response status code
            duration: Wall-clock duration in seconds
        """
        self.requests_total.labels(method=method, endpoint=endpoint, status=str(status)).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def render(self) -> bytes:
        """Render metrics in Prometheus text format."""
        return generate_latest(self.registry)

    content_type = CONTENT_TYPE_LATEST
