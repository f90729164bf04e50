"""Root conftest.py for the Waypoint test suite.

This file contains project-wide fixtures and pytest configuration.
"""

import os
from collections.abc import Callable, Generator, Mapping
from typing import Any

import pytest
from starlette.requests import Request

from tests.fakes import InMemoryUserStore, RecordingSink, StepClock
from waypoint.core.audit import AuditOptions
from waypoint.core.config import get_settings
from waypoint.core.context import RequestContext

APP_ENV_PREFIXES = (
    "APP_",
    "API_",
    "ENVIRONMENT",
    "DEBUG",
    "LOG_CONFIG__",
    "AUDIT_CONFIG__",
    "SERVER_CONFIG__",
    "OBSERVABILITY_CONFIG__",
    "DATABASE_CONFIG__",
)


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that test multiple components"
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> Generator[pytest.MonkeyPatch]:
    """Remove app-specific environment variables and disable tracing.

    Args:
        monkeypatch: Pytest monkeypatch fixture.

    Returns:
        pytest.MonkeyPatch: The monkeypatch instance for env manipulation.
    """
    for key in list(os.environ):
        if key.startswith(APP_ENV_PREFIXES):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("OBSERVABILITY_CONFIG__ENABLE_TRACING", "false")
    yield monkeypatch


@pytest.fixture(autouse=True)
def clean_lru_cache() -> Generator[None]:
    """Clear the settings cache before and after each test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def clean_context() -> Generator[None]:
    """Clear the request context before and after each test."""
    RequestContext.clear()
    yield
    RequestContext.clear()


@pytest.fixture
def recording_sink() -> RecordingSink:
    """Provide an in-memory audit sink."""
    return RecordingSink()


@pytest.fixture
def user_store() -> InMemoryUserStore:
    """Provide an empty in-memory user store."""
    return InMemoryUserStore()


@pytest.fixture
def step_clock() -> StepClock:
    """Provide a clock advancing 5ms per read."""
    return StepClock()


@pytest.fixture
def audit_options(recording_sink: RecordingSink, step_clock: StepClock) -> AuditOptions:
    """Audit options writing to the recording sink with a stepping clock."""
    return AuditOptions(
        app_name="waypoint",
        instance="1",
        level="INFO",
        sensitive_fields=("password",),
        sink=recording_sink,
        clock=step_clock,
    )


@pytest.fixture
def make_request() -> Callable[..., Request]:
    """Factory of Starlette requests built from a raw ASGI scope.

    Returns:
        Callable[..., Request]: ``make_request(method, path, headers=..., ...)``
    """

    def _make_request(
        method: str = "GET",
        path: str = "/api/users",
        *,
        headers: Mapping[str, str] | None = None,
        query_string: str = "",
        client: tuple[str, int] | None = ("10.0.0.1", 51234),
        path_params: Mapping[str, str] | None = None,
    ) -> Request:
        raw_headers = [(b"host", b"testserver")]
        raw_headers.extend(
            (key.lower().encode("latin-1"), value.encode("latin-1"))
            for key, value in (headers or {}).items()
        )
        scope: dict[str, Any] = {
            "type": "http",
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode(),
            "root_path": "",
            "query_string": query_string.encode(),
            "headers": raw_headers,
            "client": client,
            "server": ("testserver", 80),
            "path_params": dict(path_params or {}),
        }
        return Request(scope)

    return _make_request
