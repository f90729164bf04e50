"""Unit tests for waypoint/core/logging.py."""

import json
import logging
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest
from pytest_mock import MockerFixture

from waypoint.core import logging as logging_module
from waypoint.core.config import Settings
from waypoint.core.logging import (
    InterceptHandler,
    format_console_with_context,
    serialize_for_json,
    setup_logging,
)


def _record(**extra: Any) -> dict[str, Any]:  # noqa: ANN401
    return {
        "time": datetime(2024, 5, 17, 8, 30, tzinfo=UTC),
        "level": SimpleNamespace(name="INFO"),
        "message": "Request completed",
        "name": "waypoint.api",
        "function": "dispatch",
        "line": 42,
        "extra": extra,
        "exception": None,
    }


@pytest.mark.unit
class TestConsoleFormatter:
    """Test the development formatter."""

    def test_priority_fields_first(self) -> None:
        """Test that the transaction id is rendered before other extras."""
        formatted = format_console_with_context(
            _record(route="/users", transaction_id="tx-1")
        )

        assert formatted.index("tx-1") < formatted.index("route=/users")
        assert formatted.endswith("Request completed\n")

    def test_braces_are_escaped(self) -> None:
        """Test that braces in values cannot act as format fields."""
        formatted = format_console_with_context(_record(body="{x}"))

        assert "body={{x}}" in formatted

    def test_long_values_truncated(self) -> None:
        """Test that long extras are shortened."""
        formatted = format_console_with_context(_record(audit_record="a" * 500))

        assert "a" * 97 + "..." in formatted
        assert "a" * 98 + "." not in formatted


@pytest.mark.unit
class TestJsonSerializer:
    """Test the structured formatter."""

    def test_json_line(self) -> None:
        """Test that extras are merged and private keys are dropped."""
        line = serialize_for_json(_record(transaction_id="tx-1", _hidden=True))

        payload = json.loads(line)
        assert line.endswith("\n")
        assert payload["message"] == "Request completed"
        assert payload["level"] == "INFO"
        assert payload["transaction_id"] == "tx-1"
        assert "_hidden" not in payload


@pytest.mark.unit
class TestSetupLogging:
    """Test process-wide configuration."""

    def test_configures_once(self, mocker: MockerFixture) -> None:
        """Test that repeated calls do not reconfigure Loguru."""
        mocker.patch.object(logging_module._state, "configured", False)
        remove = mocker.patch.object(logging_module.logger, "remove")
        add = mocker.patch.object(logging_module.logger, "add")
        mocker.patch("logging.basicConfig")

        setup_logging(Settings())
        setup_logging(Settings())

        remove.assert_called_once()
        add.assert_called_once()

    def test_intercept_handler_forwards(self, mocker: MockerFixture) -> None:
        """Test that stdlib records are forwarded to Loguru."""
        opt = mocker.patch.object(logging_module.logger, "opt")
        record = logging.LogRecord(
            "uvicorn", logging.INFO, __file__, 1, "hello %s", ("world",), None
        )

        InterceptHandler().emit(record)

        opt.return_value.log.assert_called_once_with("INFO", "hello world")
