"""HTTP-classified exception hierarchy and the error classifier.

Key components:
- **ErrorCode enum**: Standardized error identifiers for programmatic handling
- **Severity enum**: Error classification for logging levels
- **HttpError**: Base exception carrying an explicit HTTP status code
- **Specialized exceptions**: validation, not-found, unauthorized, payload size
- **classify_error**: The single mapping from any failure to status + message

Exceptions are raised where an operation fails and travel unchanged to the
dispatcher boundary, where ``classify_error`` is applied exactly once.
"""

import traceback
from dataclasses import dataclass
from enum import Enum
from typing import Any, Final

DEFAULT_STATUS_CODE: Final[int] = 500
DEFAULT_ERROR_MESSAGE: Final[str] = "An unknown error occurred"
NOT_FOUND_MARKER: Final[str] = "not found"
NOT_FOUND_STATUS_CODE: Final[int] = 404


class ErrorCode(Enum):
    """Standardized error codes carried by ``HttpError`` instances."""

    INTERNAL_ERROR = "INTERNAL_ERROR"
    """An unexpected internal error occurred in the system."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Input validation failed due to invalid or malformed data."""

    NOT_FOUND = "NOT_FOUND"
    """The requested resource could not be found."""

    UNAUTHORIZED = "UNAUTHORIZED"
    """The credential is missing or invalid."""

    PAYLOAD_TOO_LARGE = "PAYLOAD_TOO_LARGE"
    """The request body exceeds the configured limit."""


class Severity(Enum):
    """Severity levels used to pick the log level of a handled error."""

    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class HttpError(Exception):
    """Base exception for failures that carry their own HTTP status code.

    Args:
        status_code: HTTP status code to answer with
        message: Human-readable error message
        error_code: Unique identifier for the error type
        severity: Severity level of the error (defaults to MEDIUM)
        context: Additional context information about the error
        cause: The original exception that caused this error
    """

    def __init__(
        self,
        status_code: int,
        message: str,
        error_code: str | ErrorCode = ErrorCode.INTERNAL_ERROR,
        severity: Severity = Severity.MEDIUM,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.status_code = status_code
        self.message = message
        self.error_code = (
            error_code.value if isinstance(error_code, ErrorCode) else error_code
        )
        self.severity = severity
        self.context = context or {}
        self.cause = cause

        super().__init__(message)
        if cause:
            self.__cause__ = cause

    @property
    def is_expected(self) -> bool:
        """Whether this error is part of normal operation (LOW or MEDIUM)."""
        return self.severity in (Severity.LOW, Severity.MEDIUM)


class ValidationError(HttpError):
    """Raised when query, params or body do not match the route's schema."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            400, message, ErrorCode.VALIDATION_ERROR, Severity.LOW, context, cause
        )


class UnauthorizedError(HttpError):
    """Raised when a credential is missing or invalid."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            401, message, ErrorCode.UNAUTHORIZED, Severity.HIGH, context, cause
        )


class NotFoundError(HttpError):
    """Raised when a requested entity does not exist."""

    def __init__(
        self,
        message: str,
        context: dict[str, Any] | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            404, message, ErrorCode.NOT_FOUND, Severity.LOW, context, cause
        )


class PayloadTooLargeError(HttpError):
    """Raised when a request body exceeds the configured size limit."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(
            413, message, ErrorCode.PAYLOAD_TOO_LARGE, Severity.LOW, context
        )


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """Outcome of classifying a failure: what the client is told."""

    status_code: int
    message: str
    kind: str


def _carried_status_code(error: BaseException) -> int | None:
    if isinstance(error, HttpError):
        return error.status_code
    # Starlette/FastAPI HTTPException carries status_code and detail
    status_code = getattr(error, "status_code", None)
    if isinstance(status_code, int) and hasattr(error, "detail"):
        return status_code
    return None


def _error_message(error: BaseException) -> str:
    if isinstance(error, HttpError):
        return error.message
    if hasattr(error, "detail") and _carried_status_code(error) is not None:
        return str(error.detail)
    return str(error)


def classify_error(error: object) -> ClassifiedError:
    """Map any raised value to an HTTP status code and message.

    Policy:
    - default ``500`` / ``"An unknown error occurred"``
    - HTTP-classified errors keep their carried status code
    - exceptions contribute their message; a message containing the exact,
      case-sensitive substring ``"not found"`` forces ``404`` even when the
      error carried another status
    - anything that is not an exception is stringified into the message

    Args:
        error: The raised value.

    Returns:
        ClassifiedError: Status code, message and the error's type name.
    """
    status_code = DEFAULT_STATUS_CODE
    message = DEFAULT_ERROR_MESSAGE

    if not isinstance(error, BaseException):
        return ClassifiedError(
            status_code=status_code,
            message=f"{DEFAULT_ERROR_MESSAGE}, {error!s}",
            kind=type(error).__name__,
        )

    carried = _carried_status_code(error)
    if carried is not None:
        status_code = carried

    message = _error_message(error)
    if NOT_FOUND_MARKER in message:
        status_code = NOT_FOUND_STATUS_CODE

    return ClassifiedError(
        status_code=status_code, message=message, kind=type(error).__name__
    )


def format_trace_stack(error: object) -> str | None:
    """Render the traceback of an exception, or None for other values.

    Args:
        error: The raised value.

    Returns:
        str | None: The formatted traceback text.
    """
    if not isinstance(error, BaseException):
        return None
    return "".join(traceback.format_exception(error))
