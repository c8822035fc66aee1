"""
Database connection gate.

Before any route runs, make sure the shared MongoDB connection is up. A
failed connection answers 500 and the request never reaches a route. When
no MONGO_URI is configured the gate steps aside; the feature routes that
would need the database were never mounted.
"""

from typing import Callable, Iterable

import structlog
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from shopapi.src.database import DatabaseConnection, DatabaseConnectionError
from shopapi.src.models import ErrorResponse

logger = structlog.get_logger(__name__)


class DatabaseGateMiddleware(BaseHTTPMiddleware):
    """
    Connect lazily on the first request that needs the database.

    Args:
        app: ASGI application
        connection: Shared connection manager
        exempt_paths: Paths served without a connection (health, metrics)
        expose_error_details: Include the driver error in the response
    """

    def __init__(
        self,
        app,
        connection: DatabaseConnection,
        exempt_paths: Iterable[str] = (),
        expose_error_details: bool = False,
    ):
        super().__init__(app)
        self.connection = connection
        self.exempt_paths = frozenset(exempt_paths)
        self.expose_error_details = expose_error_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        if (
            not self.connection.configured
            or self.connection.is_connected
            or request.url.path in self.exempt_paths
            or request.method == "OPTIONS"
        ):
            return await call_next(request)

        try:
            await self.connection.ensure_connected()
        except DatabaseConnectionError as e:
            logger.error(
                "database_gate_failed",
                path=request.url.path,
                method=request.method,
                error=str(e)
            )
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content=ErrorResponse(
                    error="Database connection failed",
                    message=str(e) if self.expose_error_details else None,
                ).render()
            )

        return await call_next(request)
