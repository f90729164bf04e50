"""Declarative typed route descriptors.

A ``RouteDefinition`` binds an HTTP method, a path template, the input
schemas and a handler into one immutable unit. Controllers build them with
``TypeRoute`` and hand a plain list to ``TypedRouter.register``:

    def routes(self) -> list[RouteDefinition]:
        return [
            TypeRoute.get("/users", self.get_all_users, RouteSchema(query=UserQuery)),
        ]

``RouteDefinition.invoke`` validates the request, calls the handler with a
``RouteContext`` and returns whatever the handler returns. It does no
logging; handlers record their own audit entries.
"""

import inspect
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any
from urllib.parse import parse_qsl

import orjson
from starlette.requests import Request
from starlette.responses import Response

from waypoint.api.constants import FORM_CONTENT_TYPE
from waypoint.api.routing.validation import RouteSchema, validate_input
from waypoint.api.schemas.envelope import ResponseEnvelope
from waypoint.core.audit import AuditLogger


class HttpMethod(StrEnum):
    """Methods a typed route can be mounted on."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"


@dataclass(frozen=True)
class RouteContext[Q = Any, P = Any, B = Any]:
    """What a handler receives: validated sections plus the raw handles.

    ``response`` is a scratch response; a status code or headers set on it
    are applied to the reply.
    """

    query: Q
    params: P
    body: B
    request: Request
    response: Response


type RouteHandler = Callable[
    [RouteContext], ResponseEnvelope | Awaitable[ResponseEnvelope]
]


async def read_body(request: Request) -> object:
    """Parse the request body.

    An empty body is ``{}``. JSON and form bodies become mappings; any other
    payload (including malformed JSON) is returned as text so that a body
    schema reports it as a violation.
    """
    raw = await request.body()
    if not raw:
        return {}

    content_type = request.headers.get("content-type", "").split(";")[0].strip()
    if content_type == FORM_CONTENT_TYPE:
        return dict(parse_qsl(raw.decode("latin-1"), keep_blank_values=True))

    try:
        return orjson.loads(raw)
    except orjson.JSONDecodeError:
        return raw.decode("utf-8", errors="replace")


@dataclass(frozen=True, slots=True)
class RouteDefinition:
    """Method, path template, schemas and handler of one route."""

    method: HttpMethod
    path: str
    handler: RouteHandler
    schema: RouteSchema = field(default_factory=RouteSchema)

    @property
    def key(self) -> tuple[str, str]:
        """Identity of the route within a mount point."""
        return (self.method.value, self.path)

    async def invoke(self, request: Request, response: Response) -> ResponseEnvelope:
        """Validate ``request`` and run the handler.

        Raises:
            ValidationError: If query, params or body fail their schema.
        """
        validated = validate_input(
            self.schema,
            query=dict(request.query_params),
            params=dict(request.path_params),
            body=await read_body(request) if self.schema.body else {},
        )
        context = RouteContext(
            query=validated.query,
            params=validated.params,
            body=validated.body,
            request=request,
            response=response,
        )

        result = self.handler(context)
        if inspect.isawaitable(result):
            result = await result
        return result


class TypeRoute:
    """Factory of ``RouteDefinition`` objects, one method per HTTP verb."""

    @staticmethod
    def _build(
        method: HttpMethod,
        path: str,
        handler: RouteHandler,
        schema: RouteSchema | None,
    ) -> RouteDefinition:
        return RouteDefinition(method, path, handler, schema or RouteSchema())

    @classmethod
    def get(
        cls, path: str, handler: RouteHandler, schema: RouteSchema | None = None
    ) -> RouteDefinition:
        """Declare a GET route."""
        return cls._build(HttpMethod.GET, path, handler, schema)

    @classmethod
    def post(
        cls, path: str, handler: RouteHandler, schema: RouteSchema | None = None
    ) -> RouteDefinition:
        """Declare a POST route."""
        return cls._build(HttpMethod.POST, path, handler, schema)

    @classmethod
    def put(
        cls, path: str, handler: RouteHandler, schema: RouteSchema | None = None
    ) -> RouteDefinition:
        """Declare a PUT route."""
        return cls._build(HttpMethod.PUT, path, handler, schema)

    @classmethod
    def patch(
        cls, path: str, handler: RouteHandler, schema: RouteSchema | None = None
    ) -> RouteDefinition:
        """Declare a PATCH route."""
        return cls._build(HttpMethod.PATCH, path, handler, schema)

    @classmethod
    def delete(
        cls, path: str, handler: RouteHandler, schema: RouteSchema | None = None
    ) -> RouteDefinition:
        """Declare a DELETE route."""
        return cls._build(HttpMethod.DELETE, path, handler, schema)


def response_data(envelope: ResponseEnvelope, audit: AuditLogger) -> ResponseEnvelope:
    """End the request's detail and summary records and return ``envelope``."""
    return audit.respond(envelope)
