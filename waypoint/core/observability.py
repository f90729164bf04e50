"""OpenTelemetry tracing with pluggable exporters.

Exporters:
- **console**: spans are written through Loguru (development)
- **otlp**: any OTLP/gRPC collector (Jaeger, Tempo, vendor agents)
- **none**: tracing is configured but nothing is exported
"""

from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import TYPE_CHECKING, Any, Final

from loguru import logger
from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from opentelemetry.instrumentation.sqlalchemy import SQLAlchemyInstrumentor
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import ReadableSpan, TracerProvider
from opentelemetry.sdk.trace.export import (
    BatchSpanProcessor,
    SpanExporter,
    SpanExportResult,
)
from opentelemetry.sdk.trace.sampling import TraceIdRatioBased

from waypoint.core.context import RequestContext

if TYPE_CHECKING:
    from collections.abc import Callable, Generator, Sequence

    from fastapi import FastAPI

    from waypoint.core.config import Settings

SERVICE_NAME_KEY: Final[str] = "service.name"
SERVICE_VERSION_KEY: Final[str] = "service.version"
ENVIRONMENT_KEY: Final[str] = "deployment.environment"
TRANSACTION_ID_ATTRIBUTE: Final[str] = "transaction_id"

NOISY_SPAN_NAMES: Final[frozenset[str]] = frozenset(
    {"connect", "http send", "http receive", "cursor.execute"}
)


class LoguruSpanExporter(SpanExporter):
    """Span exporter that writes finished spans through Loguru."""

    def export(self, spans: Sequence[ReadableSpan]) -> SpanExportResult:
        """Log each finished span at DEBUG level."""
        for span in spans:
            span_context = span.get_span_context()
            if not span_context or span.name in NOISY_SPAN_NAMES:
                continue

            attributes = dict(span.attributes or {})
            duration_ms = None
            if span.end_time and span.start_time:
                duration_ms = (span.end_time - span.start_time) // 1_000_000

            logger.bind(
                trace_id=f"0x{span_context.trace_id:032x}",
                span_id=f"0x{span_context.span_id:016x}",
                transaction_id=attributes.get(TRANSACTION_ID_ATTRIBUTE),
                span_name=span.name,
                span_kind=span.kind.name,
                duration_ms=duration_ms,
                attributes=attributes,
                status=span.status.status_code.name,
            ).debug("Trace span completed: {}", span.name)

        return SpanExportResult.SUCCESS


def get_span_exporter(settings: Settings) -> SpanExporter | None:
    """Return the exporter selected by ``OBSERVABILITY_CONFIG__EXPORTER_TYPE``.

    Args:
        settings: Application settings.

    Returns:
        SpanExporter | None: Configured exporter, or None when disabled.
    """
    exporter_type = settings.observability_config.exporter_type

    if exporter_type == "console":
        logger.info("Using Loguru span exporter")
        return LoguruSpanExporter()

    if exporter_type == "otlp":
        endpoint = (
            settings.observability_config.exporter_endpoint or "http://localhost:4317"
        )
        logger.info("Using OTLP exporter at {}", endpoint)
        return OTLPSpanExporter(
            endpoint=endpoint,
            insecure=settings.environment == "development",
        )

    logger.info("Span export disabled")
    return None


@lru_cache(maxsize=1)
def get_tracer(name: str) -> trace.Tracer:
    """Get a tracer instance for the given component."""
    return trace.get_tracer(name)


def setup_tracing(settings: Settings) -> None:
    """Install the global tracer provider.

    Args:
        settings: Application settings.
    """
    if not settings.observability_config.enable_tracing:
        logger.info("Tracing disabled by configuration")
        return

    resource = Resource.create(
        {
            SERVICE_NAME_KEY: settings.app_name,
            SERVICE_VERSION_KEY: settings.app_version,
            ENVIRONMENT_KEY: settings.environment,
        }
    )
    tracer_provider = TracerProvider(
        resource=resource,
        sampler=TraceIdRatioBased(settings.observability_config.trace_sample_rate),
    )

    if exporter := get_span_exporter(settings):
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))

    trace.set_tracer_provider(tracer_provider)

    logger.info(
        "Tracing configured",
        exporter_type=settings.observability_config.exporter_type,
        sample_rate=settings.observability_config.trace_sample_rate,
    )


def transaction_id_span_hook(
    header: str,
) -> Callable[[trace.Span, dict[str, Any]], None]:
    """Build the server request hook tagging spans with the inbound transaction id.

    The hook runs before any application middleware, so it reads the header
    from the ASGI scope rather than from the request context.

    Args:
        header: Name of the transaction header.

    Returns:
        Callable: Hook for ``FastAPIInstrumentor``.
    """
    header_key = header.lower().encode("latin-1")

    def add_transaction_id_to_span(span: trace.Span, scope: dict[str, Any]) -> None:
        if not span.is_recording():
            return
        for key, value in scope.get("headers", []):
            if key.lower() == header_key:
                span.set_attribute(TRANSACTION_ID_ATTRIBUTE, value.decode("latin-1"))
                return

    return add_transaction_id_to_span


def tag_current_span(transaction_id: str) -> None:
    """Set the transaction id on the active span, if it is recording."""
    span = trace.get_current_span()
    if span.is_recording():
        span.set_attribute(TRANSACTION_ID_ATTRIBUTE, transaction_id)


def instrument_app(
    app: FastAPI,
    settings: Settings,
    *,
    instrument_database: bool = False,
    tracer_provider: TracerProvider | None = None,
) -> None:
    """Instrument the FastAPI application (and optionally SQLAlchemy).

    Args:
        app: FastAPI application to instrument.
        settings: Application settings.
        instrument_database: Also trace SQLAlchemy statements.
        tracer_provider: Provider of the server spans. Defaults to the global one.
    """
    if not settings.observability_config.enable_tracing:
        return

    excluded = [*settings.log_config.excluded_paths]
    excluded.extend(
        url
        for url in (settings.docs_url, settings.redoc_url, settings.openapi_url)
        if url
    )
    FastAPIInstrumentor.instrument_app(
        app,
        excluded_urls=",".join(excluded),
        server_request_hook=transaction_id_span_hook(
            settings.server_config.transaction_id_header
        ),
        tracer_provider=tracer_provider,
    )

    if instrument_database:
        SQLAlchemyInstrumentor().instrument(
            enable_commenter=True,
            commenter_options={"opentelemetry_values": True},
        )

    logger.info("Application instrumented for tracing")


@contextmanager
def trace_operation(
    name: str, **attributes: str | int | float | bool
) -> Generator[trace.Span]:
    """Run a block inside a span named ``name``.

    Args:
        name: Operation name, e.g. ``postgres.find-many``.
        **attributes: Initial span attributes.

    Yields:
        Generator[trace.Span]: The created span.

    Example:
        >>> with trace_operation("postgres.find-many", scenario="get-all-user"):
        >>>     page = await store.find_many(user_filter)
    """
    tracer = get_tracer(__name__)
    span = tracer.start_span(name)

    for key, value in attributes.items():
        span.set_attribute(key, str(value))

    if transaction_id := RequestContext.get_transaction_id():
        span.set_attribute(TRANSACTION_ID_ATTRIBUTE, transaction_id)

    with trace.use_span(span, end_on_exit=True):
        yield span
