"""Typed route descriptors, input validation and the route registrar."""

from waypoint.api.routing.registrar import TypedRouter
from waypoint.api.routing.route import (
    HttpMethod,
    RouteContext,
    RouteDefinition,
    TypeRoute,
    response_data,
)
from waypoint.api.routing.validation import RouteSchema, ValidatedInput

__all__ = [
    "HttpMethod",
    "RouteContext",
    "RouteDefinition",
    "RouteSchema",
    "TypeRoute",
    "TypedRouter",
    "ValidatedInput",
    "response_data",
]
