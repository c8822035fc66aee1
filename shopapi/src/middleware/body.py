"""
Request body middleware.

Implemented as a plain ASGI middleware rather than BaseHTTPMiddleware so it
can stop reading as soon as a body crosses the size ceiling and replay the
buffered bytes to the application unchanged.

- Bodies larger than ``max_body_size`` fail with 413, checked against
  Content-Length first and then against the bytes actually received
- Declared JSON bodies that do not parse fail with 400
- Raw-body paths (payment webhooks) skip the JSON check; their bytes reach
  the handler exactly as sent
"""

import json
from typing import Iterable

import structlog
from starlette.datastructures import Headers
from starlette.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from shopapi.src.models import ErrorResponse

logger = structlog.get_logger(__name__)

JSON_CONTENT_TYPES = ("application/json",)


def _media_type(headers: Headers) -> str:
    return headers.get("content-type", "").split(";", 1)[0].strip().lower()


def _is_json(media_type: str) -> bool:
    return media_type in JSON_CONTENT_TYPES or media_type.endswith("+json")


class BodyParsingMiddleware:
    """
    Enforce the body size ceiling and JSON well-formedness.

    Args:
        app: Downstream ASGI application
        max_body_size: Ceiling in bytes
        raw_body_paths: Exact paths exempt from the JSON check
    """

    def __init__(self, app: ASGIApp, max_body_size: int, raw_body_paths: Iterable[str] = ()):
        self.app = app
        self.max_body_size = max_body_size
        self.raw_body_paths = frozenset(raw_body_paths)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = Headers(scope=scope)
        path = scope.get("path", "")

        content_length = headers.get("content-length")
        if content_length is not None and content_length.isdigit() and int(content_length) > self.max_body_size:
            await self._payload_too_large(scope, receive, send, int(content_length))
            return

        body = bytearray()
        more_body = True
        while more_body:
            message = await receive()
            if message["type"] == "http.disconnect":
                return
            body.extend(message.get("body", b""))
            if len(body) > self.max_body_size:
                await self._payload_too_large(scope, receive, send, len(body))
                return
            more_body = message.get("more_body", False)

        if body and path not in self.raw_body_paths and _is_json(_media_type(headers)):
            try:
                json.loads(body)
            except ValueError:
                logger.warning("invalid_json_body", path=path, size=len(body))
                response = JSONResponse(
                    status_code=400,
                    content=ErrorResponse(error="Invalid JSON body").render()
                )
                await response(scope, receive, send)
                return

        replayed = False

        async def replay() -> Message:
            nonlocal replayed
            if not replayed:
                replayed = True
                return {"type": "http.request", "body": bytes(body), "more_body": False}
            return await receive()

        await self.app(scope, replay, send)

    async def _payload_too_large(self, scope: Scope, receive: Receive, send: Send, size: int) -> None:
        logger.warning(
            "payload_too_large",
            path=scope.get("path"),
            size=size,
            limit=self.max_body_size
        )
        response = JSONResponse(
            status_code=413,
            content=ErrorResponse(error="Payload too large").render()
        )
        await response(scope, receive, send)
