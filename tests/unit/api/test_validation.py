"""Unit tests for waypoint/api/routing/validation.py."""

import pytest
from pydantic import BaseModel

from waypoint.api.routing.validation import (
    RouteSchema,
    ValidatedInput,
    format_violations,
    validate_input,
    validate_section,
)
from waypoint.core.exceptions import ValidationError
from waypoint.domain.users import UserBody, UserQuery


class NameQuery(BaseModel):
    """Query requiring a name."""

    name: str


class IdParams(BaseModel):
    """Path parameters requiring an id."""

    id: str


class Bio(BaseModel):
    """Nested body part."""

    bio: str


class ProfileBody(BaseModel):
    """Body with a nested model."""

    username: str
    profile: Bio


@pytest.mark.unit
class TestValidateSection:
    """Test validation of a single section."""

    def test_no_schema_passes_none(self) -> None:
        """Test that a section without schema becomes None."""
        assert validate_section(None, {"anything": 1}) is None

    def test_typed_result(self) -> None:
        """Test that a valid section becomes a model instance."""
        result = validate_section(NameQuery, {"name": "alice"})

        assert isinstance(result, NameQuery)
        assert result.name == "alice"


@pytest.mark.unit
class TestFormatViolations:
    """Test rendering of section errors."""

    def test_dotted_location(self) -> None:
        """Test that nested locations are dot-joined and errors are joined."""
        message = format_violations(
            "Body",
            [
                {
                    "type": "missing",
                    "loc": ("profile", "bio"),
                    "msg": "Field required",
                    "input": {},
                },
                {
                    "type": "missing",
                    "loc": ("username",),
                    "msg": "Field required",
                    "input": {},
                },
            ],
        )

        assert message == (
            'Body Validation error: Field required at "profile.bio"; '
            'Field required at "username"'
        )


@pytest.mark.unit
class TestValidateInput:
    """Test validation of all three sections."""

    def test_no_schema_at_all(self) -> None:
        """Test that an empty schema yields an all-None input."""
        result = validate_input(RouteSchema(), query={"a": "1"}, params={}, body={})

        assert result == ValidatedInput()

    def test_all_sections_valid(self) -> None:
        """Test that every declared section is typed."""
        schema = RouteSchema(query=NameQuery, params=IdParams, body=ProfileBody)

        result = validate_input(
            schema,
            query={"name": "n"},
            params={"id": "7"},
            body={"username": "u", "profile": {"bio": "b"}},
        )

        assert result.query == NameQuery(name="n")
        assert result.params == IdParams(id="7")
        assert result.body.profile.bio == "b"

    def test_failing_sections_are_aggregated(self) -> None:
        """Test that failing sections are reported together, query first."""
        schema = RouteSchema(query=NameQuery, params=IdParams, body=ProfileBody)

        with pytest.raises(ValidationError) as exc_info:
            validate_input(
                schema,
                query={},
                params={"id": "7"},
                body={"username": "u", "profile": {}},
            )

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == (
            "Query Validation error: Field required at 'name'; "
            "Body Validation error: Field required at 'profile.bio'"
        )
        assert set(exc_info.value.context["violations"]) == {"query", "body"}

    def test_double_quotes_replaced(self) -> None:
        """Test that the final message carries no double quotes."""
        with pytest.raises(ValidationError) as exc_info:
            validate_input(RouteSchema(params=IdParams), query={}, params={}, body={})

        assert '"' not in exc_info.value.message
        assert exc_info.value.message.startswith("Params Validation error")

    def test_invalid_email(self) -> None:
        """Test the email check of the user body."""
        with pytest.raises(ValidationError) as exc_info:
            validate_input(
                RouteSchema(body=UserBody),
                query={},
                params={},
                body={"email": "not-an-email"},
            )

        assert exc_info.value.message == (
            "Body Validation error: Invalid email at 'email'"
        )

    def test_query_strings_are_coerced(self) -> None:
        """Test that numeric query strings become integers."""
        result = validate_input(
            RouteSchema(query=UserQuery),
            query={"page": "2", "limit": "5"},
            params={},
            body={},
        )

        assert (result.query.page, result.query.limit) == (2, 5)
