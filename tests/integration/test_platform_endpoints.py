"""Integration tests for the endpoints and guards around the business routes."""

from collections.abc import AsyncIterator

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from prometheus_client import CollectorRegistry

from tests.fakes import InMemoryUserStore, RecordingSink
from waypoint.api.main import create_app
from waypoint.core.config import Settings


@pytest.mark.integration
class TestHealthz:
    """GET /healthz."""

    async def test_plain_ok(
        self, client: AsyncClient, recording_sink: RecordingSink
    ) -> None:
        """Test the liveness body and that no audit records are written."""
        response = await client.get("/healthz")

        assert response.status_code == 200
        assert response.text == "OK"
        assert response.headers["content-type"].startswith("text/plain")
        assert recording_sink.records == []


@pytest.mark.integration
class TestUnknownUrl:
    """Unmatched paths and methods."""

    async def test_unknown_path(self, client: AsyncClient) -> None:
        """Test the reply for a path no route matches."""
        response = await client.get("/nope")

        assert response.status_code == 404
        assert response.json() == {"message": "Unknown URL", "path": "/nope"}

    async def test_query_kept_in_path(self, client: AsyncClient) -> None:
        """Test that the reported path keeps the query string."""
        response = await client.get("/nope?x=1")

        assert response.json()["path"] == "/nope?x=1"

    async def test_unknown_method(self, client: AsyncClient) -> None:
        """Test that an unmatched method is reported the same way."""
        response = await client.patch("/api/users")

        assert response.status_code == 404
        assert response.json()["message"] == "Unknown URL"


@pytest.mark.integration
class TestMetricsEndpoint:
    """GET /metrics."""

    async def test_counters_exposed(
        self, client: AsyncClient, user_store: InMemoryUserStore
    ) -> None:
        """Test that served requests show up by route template."""
        stored = user_store.add("a@b.com")
        await client.get(f"/api/users/{stored.id}")

        response = await client.get("/metrics")

        assert response.status_code == 200
        assert "http_requests_total" in response.text
        assert 'route="/api/users/{id}"' in response.text
        assert 'route="/metrics"' not in response.text

    async def test_disabled(
        self, user_store: InMemoryUserStore, recording_sink: RecordingSink
    ) -> None:
        """Test that the endpoint can be switched off."""
        app = create_app(
            Settings(server_config={"enable_metrics": False}),
            user_store=user_store,
            log_sink=recording_sink,
            metrics_registry=CollectorRegistry(),
        )

        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as client:
            response = await client.get("/metrics")

        assert response.status_code == 404


@pytest.mark.integration
class TestPayloadLimit:
    """Request body size guard."""

    async def test_oversized_body(
        self, client: AsyncClient, recording_sink: RecordingSink
    ) -> None:
        """Test that a body over the limit is rejected before the route."""
        response = await client.post(
            "/api/users", json={"email": "a@b.com", "name": "x" * 2048}
        )

        assert response.status_code == 413
        assert response.json()["statusCode"] == 413
        assert recording_sink.records == []

    async def test_chunked_body_over_limit(
        self, client: AsyncClient, recording_sink: RecordingSink
    ) -> None:
        """Test that a body sent without Content-Length is still limited."""

        async def body() -> AsyncIterator[bytes]:
            yield b'{"username": "'
            for _ in range(4):
                yield b"x" * 1024
            yield b'"}'

        response = await client.post(
            "/api/profile",
            content=body(),
            headers={"content-type": "application/json"},
        )

        assert response.status_code == 413
        assert response.json()["message"] == (
            "Request payload exceeds the 1024 byte limit"
        )
        assert recording_sink.records == []


@pytest.mark.integration
class TestTransactionHeader:
    """Transaction id echo."""

    async def test_header_echoed(self, client: AsyncClient) -> None:
        """Test that the inbound id is echoed on the response."""
        response = await client.get("/healthz", headers={"x-transaction-id": "tx-1"})

        assert response.headers["x-transaction-id"] == "tx-1"

    async def test_generated_for_unknown_url(self, client: AsyncClient) -> None:
        """Test that even failed requests carry an id."""
        response = await client.get("/nope")

        assert response.headers["x-transaction-id"].startswith("default-")


@pytest.mark.integration
class TestApplicationFactory:
    """Application wiring."""

    def test_collaborators_on_state(
        self, app: FastAPI, app_settings: Settings
    ) -> None:
        """Test that the wired app exposes its collaborators."""
        assert app.state.audit.options.app_name == app_settings.app_name
        assert app.state.metrics.registry is not None

    async def test_lifespan_hooks_run(
        self, user_store: InMemoryUserStore, recording_sink: RecordingSink
    ) -> None:
        """Test that startup and teardown callbacks are awaited in order."""
        calls: list[str] = []

        async def started() -> None:
            calls.append("startup")

        async def stopped() -> None:
            calls.append("teardown")

        app = create_app(
            Settings(),
            user_store=user_store,
            log_sink=recording_sink,
            metrics_registry=CollectorRegistry(),
            startup=[started],
            teardown=[stopped],
        )

        async with app.router.lifespan_context(app):
            assert calls == ["startup"]

        assert calls == ["startup", "teardown"]
