"""Validation of query, params and body against a route's declared schemas.

Each section is validated on its own with ``model_validate``. A section
without a schema is passed through as ``None``. All three sections are
checked on every call, so one failed request reports every failing section:

    Query Validation error: <msg> at "<path>"; Params Validation error: ...

Violations inside a section keep pydantic's order, which follows field
declaration order. Double quotes are replaced with single quotes in the
final message.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Final

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import ErrorDetails

from waypoint.core.exceptions import ValidationError

SECTIONS: Final[tuple[tuple[str, str], ...]] = (
    ("query", "Query"),
    ("params", "Params"),
    ("body", "Body"),
)


@dataclass(frozen=True, slots=True)
class RouteSchema:
    """Optional pydantic model per input section."""

    query: type[BaseModel] | None = None
    params: type[BaseModel] | None = None
    body: type[BaseModel] | None = None


@dataclass(frozen=True, slots=True)
class ValidatedInput:
    """Validated sections of one request; ``None`` where no schema applies."""

    query: Any = None
    params: Any = None
    body: Any = None


def _location(loc: Sequence[int | str]) -> str:
    return ".".join(str(part) for part in loc)


def format_violations(label: str, errors: Sequence[ErrorDetails]) -> str:
    """Render the errors of one section.

    Args:
        label: Section label (``Query``, ``Params`` or ``Body``).
        errors: Errors reported by pydantic for that section.

    Returns:
        str: ``<label> Validation error: <msg> at "<path>"; ...``
    """
    rendered = "; ".join(
        f'{error["msg"]} at "{_location(error["loc"])}"' for error in errors
    )
    return f"{label} Validation error: {rendered}"


def validate_section[M: BaseModel](schema: type[M] | None, raw: object) -> M | None:
    """Validate one section, or pass it through as None without a schema.

    Raises:
        pydantic.ValidationError: If ``raw`` does not match ``schema``.
    """
    if schema is None:
        return None
    return schema.model_validate(raw)


def validate_input(
    schema: RouteSchema,
    *,
    query: object,
    params: object,
    body: object,
) -> ValidatedInput:
    """Validate all three sections of a request.

    Args:
        schema: The route's declared schemas.
        query: Raw query mapping.
        params: Raw path parameters.
        body: Parsed request body.

    Returns:
        ValidatedInput: The typed sections.

    Raises:
        ValidationError: If any section failed; the message lists every
            failing section in Query, Params, Body order.
    """
    raw = {"query": query, "params": params, "body": body}
    validated: dict[str, Any] = {}
    violations: dict[str, str] = {}

    for section, label in SECTIONS:
        try:
            validated[section] = validate_section(getattr(schema, section), raw[section])
        except PydanticValidationError as exc:
            violations[section] = format_violations(label, exc.errors())

    if violations:
        message = "; ".join(violations.values()).replace('"', "'")
        raise ValidationError(message, context={"violations": violations})

    return ValidatedInput(**validated)
