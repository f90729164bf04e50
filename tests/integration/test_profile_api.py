"""Integration tests for the ``/api/profile`` resource."""

import pytest
from httpx import AsyncClient

from tests.fakes import RecordingSink
from waypoint.core.audit import LogType


@pytest.mark.integration
class TestProfileApi:
    """GET and POST /api/profile, GET /api/profile/{id}."""

    async def test_get_profile(
        self, client: AsyncClient, recording_sink: RecordingSink
    ) -> None:
        """Test the empty list answer and the recorded query."""
        response = await client.get("/api/profile", params={"username": "neo"})

        assert response.json() == {
            "success": True,
            "message": "Request successful",
            "data": [],
        }
        [detail] = recording_sink.of(LogType.DETAIL)
        assert detail["Scenario"] == "get-profile"
        assert detail["Input"][1]["Data"] == {"username": "neo"}

    async def test_post_profile(self, client: AsyncClient) -> None:
        """Test that the username is echoed."""
        response = await client.post("/api/profile", json={"username": "trinity"})

        assert response.json()["data"] == {"username": "trinity"}

    async def test_post_profile_requires_username(self, client: AsyncClient) -> None:
        """Test that a missing username is a Body violation."""
        response = await client.post("/api/profile", json={})

        assert response.status_code == 400
        assert response.json()["message"] == (
            "Body Validation error: Field required at 'username'"
        )

    async def test_get_profile_by_id(self, client: AsyncClient) -> None:
        """Test the id echo."""
        response = await client.get("/api/profile/abc")

        assert response.json()["data"] == {"id": "abc"}
