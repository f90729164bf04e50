"""Sensitive data sanitization for audit payloads and error logging.

Audit records copy request bodies and store descriptors verbatim, so every
payload goes through ``sanitize_value`` before it is attached to a record.
Field names are matched against a default pattern plus the configured
``LOG_CONFIG__SENSITIVE_FIELDS`` list; matching values are replaced with
``[REDACTED]``. Sanitization works on copies, the original data is untouched.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from re import Pattern
from typing import Any, Final

REDACTED: Final[str] = "[REDACTED]"

DEFAULT_SENSITIVE_PATTERN: Final[Pattern[str]] = re.compile(
    r"(password|passwd|secret|token|api[_-]?key|apikey|authorization|"
    r"credential|private[_-]?key|access[_-]?key|ssn|cvv|cvc|card[_-]?number)",
    re.IGNORECASE,
)

# Maximum depth for nested structure sanitization
MAX_DEPTH: Final[int] = 10


def is_sensitive_field(field_name: str, sensitive_fields: Iterable[str] = ()) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check.
        sensitive_fields: Extra configured names (substring, case-insensitive).

    Returns:
        bool: True if the field appears to contain sensitive data.
    """
    if DEFAULT_SENSITIVE_PATTERN.search(field_name):
        return True

    field_lower = field_name.lower()
    return any(field.lower() in field_lower for field in sensitive_fields)


def sanitize_value(
    value: Any,  # noqa: ANN401 - payloads are arbitrary JSON-like data
    field_name: str = "",
    sensitive_fields: Iterable[str] = (),
    depth: int = 0,
) -> Any:  # noqa: ANN401
    """Return a copy of ``value`` with sensitive fields redacted.

    Dicts, lists and tuples are walked recursively up to MAX_DEPTH.

    Args:
        value: The value to potentially sanitize.
        field_name: The key the value was found under.
        sensitive_fields: Extra configured sensitive names.
        depth: Current recursion depth.

    Returns:
        Any: Sanitized value, or the original when nothing is sensitive.
    """
    if depth > MAX_DEPTH:
        return REDACTED

    if field_name and is_sensitive_field(field_name, sensitive_fields):
        return REDACTED

    fields = tuple(sensitive_fields)
    if isinstance(value, dict):
        return {
            k: sanitize_value(v, str(k), fields, depth + 1) for k, v in value.items()
        }
    if isinstance(value, list):
        return [sanitize_value(item, "", fields, depth + 1) for item in value]
    if isinstance(value, tuple):
        return tuple(sanitize_value(item, "", fields, depth + 1) for item in value)

    return value


def sanitize_error_context(
    error: BaseException,
    context: dict[str, Any] | None = None,
    sensitive_fields: Iterable[str] = (),
) -> dict[str, Any]:
    """Create sanitized error context for logging.

    Args:
        error: The exception to describe.
        context: Additional context to include (will be sanitized).
        sensitive_fields: Extra configured sensitive names.

    Returns:
        dict[str, Any]: Sanitized error context safe for logging.
    """
    error_context: dict[str, Any] = {
        "error_type": type(error).__name__,
        "error_message": str(error),
    }
    if context:
        error_context.update(sanitize_value(context, "", sensitive_fields))

    error_details = getattr(error, "context", None)
    if isinstance(error_details, dict) and error_details:
        error_context["error_details"] = sanitize_value(
            error_details, "", sensitive_fields
        )

    return error_context
