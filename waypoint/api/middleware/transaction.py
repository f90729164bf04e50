"""Transaction ID middleware.

The inbound transaction header is honored when present. Otherwise a
``default-<uuid4>`` id is generated and written into the request headers
before any route runs, so every audit record of the request reads the same
value. The id is also stored in the request context, set on the active
server span, bound to every Loguru record of the request and echoed on the
response.
"""

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from waypoint.core.context import RequestContext, generate_transaction_id
from waypoint.core.observability import tag_current_span


class TransactionIdMiddleware(BaseHTTPMiddleware):
    """Guarantees one transaction id per request.

    Args:
        app: The ASGI application.
        header: Name of the transaction header (case-insensitive).
    """

    def __init__(self, app: ASGIApp, *, header: str) -> None:
        super().__init__(app)
        self.header = header.lower()

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        """Resolve the transaction id and run the request under it.

        Args:
            request: The incoming request.
            call_next: The next middleware/endpoint.

        Returns:
            Response: Response carrying the transaction header.
        """
        transaction_id = request.headers.get(self.header)
        if not transaction_id:
            transaction_id = generate_transaction_id()
            # Downstream code reads the shared scope, not this Request object
            request.scope["headers"] = [
                *request.scope["headers"],
                (self.header.encode("latin-1"), transaction_id.encode("latin-1")),
            ]

        RequestContext.set_transaction_id(transaction_id)
        tag_current_span(transaction_id)

        with logger.contextualize(transaction_id=transaction_id):
            response = await call_next(request)
            response.headers[self.header] = transaction_id
            return response
