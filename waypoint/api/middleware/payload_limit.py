"""Request body size limit.

Requests whose ``Content-Length`` exceeds ``SERVER_CONFIG__MAX_PAYLOAD_BYTES``
are answered with a 413 error envelope before any route runs. A malformed
``Content-Length`` is answered with 400. Bodies without a declared length
(``Transfer-Encoding: chunked``) are counted while they are received; the
first chunk past the limit raises ``PayloadTooLargeError`` from ``receive``.
A limit of 0 disables the check.
"""

from loguru import logger
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from waypoint.api.middleware.error_handler import ErrorHandler
from waypoint.core.exceptions import PayloadTooLargeError, ValidationError


class PayloadLimitMiddleware:
    """Rejects oversized request bodies.

    Args:
        app: The ASGI application.
        max_bytes: Largest accepted body; 0 disables the check.
        error_handler: Renders the rejection envelope.
    """

    def __init__(
        self, app: ASGIApp, *, max_bytes: int, error_handler: ErrorHandler
    ) -> None:
        self.app = app
        self.max_bytes = max_bytes
        self.error_handler = error_handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        """Check the declared size, then count the streamed body."""
        if scope["type"] != "http" or self.max_bytes <= 0:
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        content_length = request.headers.get("content-length")
        if content_length is not None:
            try:
                size = int(content_length)
            except ValueError:
                logger.debug("Rejected malformed Content-Length: {}", content_length)
                response = self.error_handler.handle_error(
                    request, ValidationError("Invalid Content-Length header")
                )
                await response(scope, receive, send)
                return

            if size > self.max_bytes:
                response = self.error_handler.handle_error(
                    request,
                    PayloadTooLargeError(
                        f"Request payload of {size} bytes exceeds the "
                        f"{self.max_bytes} byte limit",
                        context={"content_length": size, "limit": self.max_bytes},
                    ),
                )
                await response(scope, receive, send)
                return

        received = 0
        response_started = False

        async def limited_receive() -> Message:
            nonlocal received
            message = await receive()
            if message["type"] == "http.request":
                received += len(message.get("body", b""))
                if received > self.max_bytes:
                    raise PayloadTooLargeError(
                        f"Request payload exceeds the {self.max_bytes} byte limit",
                        context={"received": received, "limit": self.max_bytes},
                    )
            return message

        async def tracked_send(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, limited_receive, tracked_send)
        except PayloadTooLargeError as exc:
            # Typed routes answer this themselves; other endpoints end up here
            if response_started:
                raise
            response = self.error_handler.handle_error(request, exc)
            await response(scope, receive, send)
