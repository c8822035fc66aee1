"""
FastAPI dependency injection for the shared application resources.

Provides injectable dependencies for:
- Application settings
- The lazily connected MongoDB handle
- The startup capability table
- The Stripe webhook dispatcher

Feature route modules use these instead of importing globals, so they work
against whichever application instance mounted them.
"""

import structlog
from fastapi import HTTPException, Request, status

from shopapi.src.config import Settings
from shopapi.src.database import DatabaseConnection, DatabaseConnectionError
from shopapi.src.routes.registry import CapabilityTable
from shopapi.src.webhooks.dispatcher import WebhookDispatcher

logger = structlog.get_logger(__name__)


def get_app_settings(request: Request) -> Settings:
    """Settings the current application was built with."""
    return request.app.state.settings


def get_connection(request: Request) -> DatabaseConnection:
    return request.app.state.database


async def get_database(request: Request):
    """
    Get the MongoDB database for the current request.

    The database gate middleware normally connects before any route runs;
    this re-checks so routes stay safe when mounted without the gate.

    Returns:
        pymongo AsyncDatabase

    Raises:
        HTTPException: 503 if the connection is unavailable
    """
    connection = get_connection(request)
    try:
        await connection.ensure_connected()
    except DatabaseConnectionError as e:
        logger.warning("database_unavailable", path=request.url.path, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database unavailable"
        )
    return connection.database


def get_capabilities(request: Request) -> CapabilityTable:
    return request.app.state.capabilities


def get_webhook_dispatcher(request: Request) -> WebhookDispatcher:
    return request.app.state.webhook_dispatcher
