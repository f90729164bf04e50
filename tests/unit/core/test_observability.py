"""Unit tests for waypoint/core/observability.py."""

from unittest.mock import MagicMock

import pytest
from pytest_mock import MockerFixture

from waypoint.core import observability
from waypoint.core.config import Settings
from waypoint.core.context import RequestContext
from waypoint.core.observability import (
    TRANSACTION_ID_ATTRIBUTE,
    LoguruSpanExporter,
    get_span_exporter,
    instrument_app,
    setup_tracing,
    tag_current_span,
    trace_operation,
    transaction_id_span_hook,
)


@pytest.mark.unit
class TestSpanExporter:
    """Test exporter selection."""

    def test_console(self) -> None:
        """Test that console export goes through Loguru."""
        settings = Settings(observability_config={"exporter_type": "console"})

        assert isinstance(get_span_exporter(settings), LoguruSpanExporter)

    def test_none(self) -> None:
        """Test that export can be disabled."""
        settings = Settings(observability_config={"exporter_type": "none"})

        assert get_span_exporter(settings) is None

    def test_otlp_endpoint(self, mocker: MockerFixture) -> None:
        """Test that the OTLP exporter gets the configured endpoint."""
        exporter = mocker.patch.object(observability, "OTLPSpanExporter")
        settings = Settings(
            observability_config={
                "exporter_type": "otlp",
                "exporter_endpoint": "http://collector:4317",
            }
        )

        get_span_exporter(settings)

        exporter.assert_called_once_with(
            endpoint="http://collector:4317", insecure=True
        )


@pytest.mark.unit
class TestTracingSetup:
    """Test provider installation and app instrumentation."""

    def test_disabled_does_nothing(self, mocker: MockerFixture) -> None:
        """Test that no provider is installed when tracing is off."""
        set_provider = mocker.patch.object(observability.trace, "set_tracer_provider")

        setup_tracing(Settings(observability_config={"enable_tracing": False}))

        set_provider.assert_not_called()

    def test_enabled_installs_provider(self, mocker: MockerFixture) -> None:
        """Test that a provider is installed when tracing is on."""
        set_provider = mocker.patch.object(observability.trace, "set_tracer_provider")

        setup_tracing(
            Settings(
                observability_config={"enable_tracing": True, "exporter_type": "none"}
            )
        )

        set_provider.assert_called_once()

    def test_instrument_excludes_probe_paths(self, mocker: MockerFixture) -> None:
        """Test that health, metrics and docs URLs are not traced."""
        instrumentor = mocker.patch.object(observability, "FastAPIInstrumentor")
        app = MagicMock()

        instrument_app(app, Settings(observability_config={"enable_tracing": True}))

        excluded = instrumentor.instrument_app.call_args.kwargs["excluded_urls"]
        assert excluded.split(",") == [
            "/healthz",
            "/metrics",
            "/docs",
            "/redoc",
            "/openapi.json",
        ]


@pytest.mark.unit
class TestSpanHelpers:
    """Test span tagging."""

    def test_request_hook_reads_scope_header(self) -> None:
        """Test that the server span gets the id from the raw request headers."""
        hook = transaction_id_span_hook("X-Transaction-Id")
        span = MagicMock()
        span.is_recording.return_value = True
        scope = {"headers": [(b"host", b"test"), (b"x-transaction-id", b"tx-9")]}

        hook(span, scope)

        span.set_attribute.assert_called_once_with(TRANSACTION_ID_ATTRIBUTE, "tx-9")

    def test_request_hook_without_header(self) -> None:
        """Test that a request without the header leaves the span untagged."""
        hook = transaction_id_span_hook("x-transaction-id")
        span = MagicMock()
        span.is_recording.return_value = True

        hook(span, {"headers": [(b"host", b"test")]})

        span.set_attribute.assert_not_called()

    def test_tag_current_span(self, mocker: MockerFixture) -> None:
        """Test that the active span is tagged when it records."""
        span = MagicMock()
        span.is_recording.return_value = True
        mocker.patch.object(observability.trace, "get_current_span", return_value=span)

        tag_current_span("default-1")

        span.set_attribute.assert_called_once_with(
            TRANSACTION_ID_ATTRIBUTE, "default-1"
        )

    def test_trace_operation_sets_attributes(self, mocker: MockerFixture) -> None:
        """Test that attributes and the transaction id are set on the span."""
        RequestContext.set_transaction_id("tx-3")
        span = MagicMock()
        tracer = MagicMock()
        tracer.start_span.return_value = span
        mocker.patch.object(observability, "get_tracer", return_value=tracer)
        mocker.patch.object(observability.trace, "use_span")

        with trace_operation("postgres.find-many", scenario="get-all-user") as active:
            assert active is span

        tracer.start_span.assert_called_once_with("postgres.find-many")
        span.set_attribute.assert_any_call("scenario", "get-all-user")
        span.set_attribute.assert_any_call(TRANSACTION_ID_ATTRIBUTE, "tx-3")
