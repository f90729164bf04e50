"""The uniform response envelope returned by every route.

Handlers return a ``ResponseEnvelope`` with only the fields they care about;
only explicitly set fields reach the wire, so paging fields appear on list
endpoints alone. Field names are camelCase on the wire (``statusCode``,
``pageSize``, ``traceStack``).
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ResponseEnvelope(BaseModel):
    """Success or error envelope."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    success: bool = Field(default=True, description="False only for errors")
    status_code: int | None = Field(default=None, examples=[201, 404])
    message: str | None = Field(default=None, examples=["Created"])
    data: Any = Field(default=None, description="Route payload")
    trace_stack: str | None = Field(
        default=None,
        description="Error traceback, development environment only",
    )
    page: int | None = None
    page_size: int | None = None
    total: int | None = None

    def render(self) -> dict[str, Any]:
        """Dump the set fields with their wire names."""
        return self.model_dump(mode="json", by_alias=True, exclude_unset=True)


class UnknownUrlResponse(BaseModel):
    """Reply for a path or method no route matches."""

    message: str
    path: str
