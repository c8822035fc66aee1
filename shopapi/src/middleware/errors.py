"""
Unhandled error middleware.

Registered innermost, directly around the router, so an exception escaping
a route is rendered as the 500 envelope while every other middleware (CORS,
security headers, correlation id, metrics) still sees an ordinary response.
"""

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shopapi.src.errors import internal_error_response


class UnhandledErrorMiddleware:
    """
    Convert exceptions from routes into the 500 envelope.

    Args:
        app: Downstream ASGI application
        expose_error_details: Include the error text in the response
    """

    def __init__(self, app: ASGIApp, expose_error_details: bool = False):
        self.app = app
        self.expose_error_details = expose_error_details

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def send_wrapper(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            if response_started:
                # Too late for an error body; let the server drop the connection.
                raise
            response = internal_error_response(Request(scope), exc, self.expose_error_details)
            await response(scope, receive, send)
