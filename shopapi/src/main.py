"""
FastAPI application entry point for the Storefront API.

This module provides the application factory with:
- Body size limits and raw-body webhook handling
- Environment-dependent CORS allow-lists
- Lazy MongoDB connection gating
- Feature routers resolved once into a capability table
- Health check, smoke test and Prometheus metrics endpoints
- Catch-all 404 and terminal error handling

Outside production ``run()`` serves the app with uvicorn. In production the
module-level ``app`` is the ASGI handler a serverless host invokes and no
socket is bound.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
import uvicorn
from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from shared.logging import configure_logging
from shared.metrics import HTTPMetrics
from shopapi.src import __version__
from shopapi.src.config import Settings, get_settings
from shopapi.src.database import DatabaseConnection
from shopapi.src.errors import register_exception_handlers
from shopapi.src.middleware import (
    BodyParsingMiddleware,
    DatabaseGateMiddleware,
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    UnhandledErrorMiddleware,
)
from shopapi.src.routers import health
from shopapi.src.routes.registry import load_feature_routes
from shopapi.src.webhooks.dispatcher import WebhookDispatcher

logger = structlog.get_logger(__name__)


def create_app(
    settings: Optional[Settings] = None,
    database: Optional[DatabaseConnection] = None,
) -> FastAPI:
    """
    Build the application.

    Middleware, from outermost to innermost: request logging, security
    headers, CORS, gzip, body limits, database gate, unhandled errors.

    Args:
        settings: Settings to build with, the cached environment settings by default
        database: Connection manager, built from settings by default

    Returns:
        Configured FastAPI application
    """
    settings = settings or get_settings()

    configure_logging(
        log_level=settings.log_level,
        json_logs=settings.is_production,
        service_name=settings.app_name,
        environment=settings.environment,
    )

    if database is None:
        database = DatabaseConnection(
            settings.mongo_uri,
            default_database=settings.mongo_database,
            connect_timeout_ms=settings.mongo_connect_timeout_ms,
        )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Log startup and release the database connection on shutdown."""
        logger.info(
            "application_started",
            app_name=settings.app_name,
            version=settings.app_version,
            environment=settings.environment,
            limited_mode=app.state.capabilities.limited_mode
        )
        try:
            yield
        finally:
            logger.info("application_shutting_down")
            await database.close()
            logger.info("application_shutdown_complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="HTTP entrypoint for the storefront backend.",
        docs_url=None if settings.is_production else "/docs",
        redoc_url=None,
        lifespan=lifespan,
    )

    metrics = HTTPMetrics() if settings.metrics_enabled else None
    dispatcher = WebhookDispatcher()

    app.state.settings = settings
    app.state.database = database
    app.state.webhook_dispatcher = dispatcher
    app.state.metrics = metrics

    # ========================================================================
    # Routes
    # ========================================================================

    app.include_router(health.router, prefix=settings.api_prefix)

    if metrics:
        @app.get(settings.metrics_endpoint, include_in_schema=False)
        async def metrics_endpoint() -> Response:
            """Prometheus metrics in text exposition format."""
            metrics.database_connected.set(1 if database.is_connected else 0)
            return Response(content=metrics.render(), media_type=metrics.content_type)

    capabilities = load_feature_routes(app, settings, dispatcher)
    app.state.capabilities = capabilities

    # ========================================================================
    # Middleware (last added runs first)
    # ========================================================================

    app.add_middleware(UnhandledErrorMiddleware, expose_error_details=settings.expose_error_details)

    app.add_middleware(
        DatabaseGateMiddleware,
        connection=database,
        exempt_paths=[settings.health_path, settings.metrics_endpoint],
        expose_error_details=settings.expose_error_details,
    )

    app.add_middleware(
        BodyParsingMiddleware,
        max_body_size=settings.max_body_size,
        raw_body_paths=capabilities.raw_body_paths,
    )

    app.add_middleware(GZipMiddleware, minimum_size=1000)

    cors_origins = settings.cors_origins
    if settings.is_production and not cors_origins:
        logger.warning("cors_frontend_url_missing", detail="FRONTEND_URL unset, all cross-origin requests refused")
    logger.info("configuring_cors", origins=cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    if settings.security_headers_enabled:
        app.add_middleware(
            SecurityHeadersMiddleware,
            hsts_max_age=settings.security_hsts_max_age if settings.is_production else 0,
        )

    app.add_middleware(RequestLoggingMiddleware, metrics=metrics)

    register_exception_handlers(app, expose_error_details=settings.expose_error_details)

    return app


# Serverless hosts import this module and invoke ``app`` directly.
app = create_app()


def run() -> None:
    """
    Serve the application with uvicorn outside production.

    In production nothing is bound; the host invokes ``app``.
    """
    settings = get_settings()

    if settings.is_production:
        logger.info("serverless_mode", detail="no socket bound, export shopapi.src.main:app")
        return

    logger.info(
        "starting_uvicorn_server",
        host=settings.host,
        port=settings.port,
        version=__version__
    )

    uvicorn.run(
        "shopapi.src.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.is_development,
        log_level=settings.log_level.lower(),
        access_log=False,
    )


if __name__ == "__main__":
    run()
