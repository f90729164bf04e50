"""Fixtures wiring the full application for integration tests."""

from collections.abc import AsyncGenerator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from tests.fakes import InMemoryUserStore, RecordingSink
from waypoint.api.main import create_app
from waypoint.core.config import Settings


@pytest.fixture
def app_settings() -> Settings:
    """Production-like settings with a small body limit."""
    return Settings(
        environment="production",
        server_config={"max_payload_bytes": 1024},
        observability_config={"enable_tracing": False},
    )


@pytest.fixture
def app(
    app_settings: Settings,
    user_store: InMemoryUserStore,
    recording_sink: RecordingSink,
) -> FastAPI:
    """The application with in-memory collaborators."""
    return create_app(
        app_settings,
        user_store=user_store,
        log_sink=recording_sink,
        metrics_registry=CollectorRegistry(),
    )


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """In-process HTTP client of ``app``."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as async_client:
        yield async_client
