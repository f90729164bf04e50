"""The single global error-handling stage.

Every failure of a typed route ends here: ``ErrorHandler.handle_error``
classifies it once with ``classify_error``, logs it and renders the error
envelope ``{statusCode, message, success: false, data: null, traceStack?}``.
``traceStack`` is only filled in the development environment.

Paths and methods that no route matches are answered with
``404 {message: "Unknown URL", path}``.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.responses import Response
from loguru import logger
from starlette.exceptions import HTTPException

from waypoint.api.constants import UNKNOWN_URL_MESSAGE, UNMATCHED_ROUTE_STATUS_CODES
from waypoint.api.schemas.envelope import ResponseEnvelope, UnknownUrlResponse
from waypoint.api.utils.responses import ORJSONResponse
from waypoint.core.config import Settings
from waypoint.core.error_context import sanitize_error_context
from waypoint.core.exceptions import (
    HttpError,
    classify_error,
    format_trace_stack,
)

CLIENT_ERROR_CEILING = 500


def original_url(request: Request) -> str:
    """Path of ``request`` including its query string."""
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def unknown_url_response(request: Request) -> Response:
    """Reply for a path or method no route matches."""
    body = UnknownUrlResponse(message=UNKNOWN_URL_MESSAGE, path=original_url(request))
    return ORJSONResponse(status_code=404, content=body.model_dump())


class ErrorHandler:
    """Classifies, logs and renders failures.

    Args:
        settings: Application settings; decide whether traces are exposed
            and which context fields are redacted in logs.
    """

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def _log(
        self, request: Request, error: object, status_code: int, kind: str
    ) -> None:
        request_context = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
        }
        sensitive_fields = self.settings.log_config.sensitive_fields
        if isinstance(error, BaseException):
            context = sanitize_error_context(error, request_context, sensitive_fields)
        else:
            context = {**request_context, "error_type": kind}

        expected = status_code < CLIENT_ERROR_CEILING
        if isinstance(error, HttpError):
            context["error_code"] = error.error_code
            context["severity"] = error.severity.value
            expected = expected and error.is_expected

        if expected:
            logger.warning("Request failed with {}: {}", kind, str(error), **context)
        elif isinstance(error, BaseException):
            logger.opt(exception=error).error(
                "Unhandled {}: {}", kind, str(error), **context
            )
        else:
            logger.error("Unhandled non-exception value: {}", str(error), **context)

    def build_envelope(self, error: object) -> tuple[int, ResponseEnvelope]:
        """Classify ``error`` and build its envelope.

        Returns:
            tuple[int, ResponseEnvelope]: HTTP status and error envelope.
        """
        classified = classify_error(error)
        fields: dict[str, Any] = {
            "status_code": classified.status_code,
            "message": classified.message,
            "success": False,
            "data": None,
        }
        if self.settings.expose_trace_stack and (trace := format_trace_stack(error)):
            fields["trace_stack"] = trace
        return classified.status_code, ResponseEnvelope(**fields)

    def handle_error(self, request: Request, error: object) -> Response:
        """Turn any failure into the error envelope response."""
        status_code, envelope = self.build_envelope(error)
        self._log(request, error, status_code, type(error).__name__)
        return ORJSONResponse(status_code=status_code, content=envelope.render())


def register_exception_handlers(app: FastAPI, error_handler: ErrorHandler) -> None:
    """Register the global handlers with the FastAPI application.

    Typed routes catch their own failures and call ``error_handler``
    directly; these handlers cover everything raised outside them.

    Args:
        app: The FastAPI application instance.
        error_handler: The shared error handler.
    """

    async def http_error_handler(request: Request, exc: Exception) -> Response:
        return error_handler.handle_error(request, exc)

    async def starlette_http_exception_handler(
        request: Request, exc: Exception
    ) -> Response:
        if (
            isinstance(exc, HTTPException)
            and exc.status_code in UNMATCHED_ROUTE_STATUS_CODES
        ):
            return unknown_url_response(request)
        return error_handler.handle_error(request, exc)

    async def generic_exception_handler(request: Request, exc: Exception) -> Response:
        return error_handler.handle_error(request, exc)

    app.add_exception_handler(HttpError, http_error_handler)
    app.add_exception_handler(HTTPException, starlette_http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered")
