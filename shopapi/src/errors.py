"""
Exception handlers.

Every failure leaves the service in the same envelope, ``{error, message?}``:

- unmatched paths and unsupported methods become the catch-all 404
- HTTPException from feature routers keeps its status code and detail
- request validation errors become 422
- anything else is logged with its traceback and becomes 500, with the
  error text included only outside production

Route errors are rendered by ``UnhandledErrorMiddleware`` (innermost), so
the 500 still passes through CORS, security headers and request logging.
The ``Exception`` handler only sees failures raised by middleware itself.
"""

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from shopapi.src.models import ErrorResponse

logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong"


def original_url(request: Request) -> str:
    """Requested path as sent (still percent-encoded), with its query string."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.scope.get("query_string", b"").decode("latin-1")
    return f"{path}?{query}" if query else path


def route_not_found(request: Request) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content=ErrorResponse(error="Route not found", path=original_url(request)).render()
    )


def is_route_miss(request: Request, exc: StarletteHTTPException) -> bool:
    """
    True for the router's own 404/405, false for ones a route raised.

    The router records the matched route in the scope; a 404 without one
    means nothing matched. Method mismatches are always folded.
    """
    if exc.status_code == status.HTTP_405_METHOD_NOT_ALLOWED:
        return True
    return exc.status_code == status.HTTP_404_NOT_FOUND and "route" not in request.scope


def internal_error_response(request: Request, exc: Exception, expose_error_details: bool) -> JSONResponse:
    """Log ``exc`` once with its traceback and render the 500 envelope."""
    logger.error(
        "unhandled_exception",
        method=request.method,
        path=request.url.path,
        error=str(exc),
        exc_info=exc
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="Internal server error",
            message=str(exc) if expose_error_details else GENERIC_ERROR_MESSAGE,
        ).render()
    )


def register_exception_handlers(app: FastAPI, expose_error_details: bool) -> None:
    """
    Install the service's exception handlers on ``app``.

    Args:
        app: FastAPI application
        expose_error_details: Include error text in 500 responses
    """

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """Handle HTTP exceptions, folding route misses into the 404 envelope."""
        if is_route_miss(request, exc):
            logger.info("route_not_found", method=request.method, path=request.url.path)
            return route_not_found(request)

        logger.warning(
            "http_exception",
            path=request.url.path,
            status_code=exc.status_code,
            detail=exc.detail
        )
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).render(),
            headers=getattr(exc, "headers", None)
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """Handle request validation errors."""
        logger.warning(
            "validation_error",
            path=request.url.path,
            errors=exc.errors()
        )
        return JSONResponse(
            status_code=422,
            content=ErrorResponse(
                error="Validation failed",
                details=jsonable_errors(exc)
            ).render()
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        """Handle exceptions raised outside any route."""
        return internal_error_response(request, exc, expose_error_details)


def jsonable_errors(exc: RequestValidationError) -> list:
    """Validation errors without the raw input or exception objects."""
    return [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
