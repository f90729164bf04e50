"""Mounting of typed route descriptors on a FastAPI router.

``TypedRouter.register`` takes an explicit list of ``RouteDefinition``
objects and adds each one to an ``APIRouter``. The mounted endpoint:

- merges a successful envelope into
  ``{"success": true, "message": "Request successful", ...}``
- answers 200 unless the handler set ``ctx.response.status_code``, and
  copies headers the handler set on ``ctx.response``
- passes any failure to the global ``ErrorHandler``
"""

from collections.abc import Awaitable, Callable, Iterable
from typing import Any, Self

from fastapi import APIRouter, Request
from fastapi.responses import Response
from loguru import logger

from waypoint.api.constants import SUCCESS_MESSAGE
from waypoint.api.middleware.error_handler import ErrorHandler
from waypoint.api.routing.route import RouteDefinition
from waypoint.api.schemas.envelope import ResponseEnvelope
from waypoint.api.utils.responses import ORJSONResponse

DEFAULT_STATUS_CODE = 200

type Endpoint = Callable[[Request, Response], Awaitable[Response]]


def success_body(payload: dict[str, Any]) -> dict[str, Any]:
    """Merge a rendered envelope into the success defaults."""
    return {"success": True, "message": SUCCESS_MESSAGE, **payload}


class TypedRouter:
    """Registers typed routes on one mount point.

    Args:
        error_handler: The global error handler failures are passed to.
        prefix: Mount point, e.g. ``/api``.
    """

    def __init__(self, error_handler: ErrorHandler, prefix: str = "") -> None:
        self.error_handler = error_handler
        self.router = APIRouter(prefix=prefix)
        self._registered: set[tuple[str, str]] = set()

    def _endpoint(self, route: RouteDefinition) -> Endpoint:
        async def endpoint(request: Request, response: Response) -> Response:
            try:
                result = await route.invoke(request, response)
                payload = ResponseEnvelope.model_validate(result).render()
            except Exception as exc:  # noqa: BLE001 - every failure gets an envelope
                return self.error_handler.handle_error(request, exc)

            reply = ORJSONResponse(
                status_code=response.status_code or DEFAULT_STATUS_CODE,
                content=success_body(payload),
            )
            for key, value in response.raw_headers:
                if key != b"content-length":
                    reply.raw_headers.append((key, value))
            return reply

        return endpoint

    def register(self, routes: Iterable[RouteDefinition]) -> Self:
        """Mount every route.

        Args:
            routes: Route descriptors collected from controllers.

        Returns:
            TypedRouter: This router, for chaining.

        Raises:
            ValueError: If a method and path pair is already registered.
        """
        for route in routes:
            if route.key in self._registered:
                msg = f"Route already registered: {route.method.value} {route.path}"
                raise ValueError(msg)

            self.router.add_api_route(
                route.path,
                self._endpoint(route),
                methods=[route.method.value],
                name=f"{route.method.value.lower()} {route.path}",
            )
            self._registered.add(route.key)
            logger.debug("Registered route {} {}", route.method.value, route.path)

        return self
