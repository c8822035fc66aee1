"""FastAPI middleware components.

This package contains the middleware registered by the application
factory: body limits, the database connection gate, request logging and
metrics, security headers and the innermost unhandled error renderer.
"""

from shopapi.src.middleware.body import BodyParsingMiddleware
from shopapi.src.middleware.database import DatabaseGateMiddleware
from shopapi.src.middleware.errors import UnhandledErrorMiddleware
from shopapi.src.middleware.logging import RequestLoggingMiddleware
from shopapi.src.middleware.security import SecurityHeadersMiddleware

__all__ = [
    "BodyParsingMiddleware",
    "DatabaseGateMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "UnhandledErrorMiddleware",
]
