"""
Request logging and metrics middleware.

Assigns a correlation id (reusing X-Correlation-ID when the caller sends
one), logs request start and completion, and records Prometheus request
metrics.
"""

import time
import uuid
from typing import Callable, Optional

import structlog
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shared.logging import bind_context, clear_context
from shared.metrics import HTTPMetrics

logger = structlog.get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _endpoint_label(request: Request) -> str:
    """Route template for metrics, so ids in paths don't explode label sets."""
    route = request.scope.get("route")
    path = getattr(route, "path", None)
    return path or "unmatched"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware for request logging and metrics."""

    def __init__(self, app, metrics: Optional[HTTPMetrics] = None):
        super().__init__(app)
        self.metrics = metrics

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        """Process request and log details."""
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        bind_context(correlation_id=correlation_id)

        method = request.method
        path = request.url.path
        client_ip = request.client.host if request.client else "unknown"

        if self.metrics:
            self.metrics.requests_in_progress.labels(method=method).inc()

        start_time = time.perf_counter()

        logger.info(
            "request_started",
            method=method,
            path=path,
            client_ip=client_ip
        )

        try:
            response = await call_next(request)
            duration = time.perf_counter() - start_time

            if self.metrics:
                self.metrics.observe_request(method, _endpoint_label(request), response.status_code, duration)

            logger.info(
                "request_completed",
                method=method,
                path=path,
                status_code=response.status_code,
                duration=f"{duration:.3f}s"
            )

            response.headers[CORRELATION_HEADER] = correlation_id
            return response

        except Exception:
            # Logged once by the terminal exception handler.
            if self.metrics:
                duration = time.perf_counter() - start_time
                self.metrics.observe_request(method, _endpoint_label(request), 500, duration)
            raise

        finally:
            if self.metrics:
                self.metrics.requests_in_progress.labels(method=method).dec()
            clear_context()
