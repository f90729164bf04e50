"""Input schemas and output shapes of the user resource."""

import re
from datetime import datetime
from typing import Annotated, Any, Final

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

EMAIL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MAX_PAGE_SIZE: Final[int] = 100


def check_email(value: str) -> str:
    """Reject strings that are not an ``local@domain.tld`` address."""
    if not EMAIL_PATTERN.match(value):
        raise PydanticCustomError("invalid_email", "Invalid email")
    return value


Email = Annotated[str, AfterValidator(check_email)]


class UserBody(BaseModel):
    """Body of create and update requests."""

    id: str | None = None
    email: Email
    name: str | None = None
    posts: list[dict[str, Any]] | None = None
    profile: dict[str, Any] | None = None


class UserQuery(BaseModel):
    """Filters and paging of the user list."""

    email: Email | None = None
    name: str | None = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=MAX_PAGE_SIZE)


class UserIdParams(BaseModel):
    """Path parameters of single-user routes."""

    id: str


class UserRecord(BaseModel):
    """A stored user as returned by a ``UserStore``."""

    model_config = ConfigDict(
        from_attributes=True, alias_generator=to_camel, populate_by_name=True
    )

    id: str
    email: str
    name: str | None
    create_by: str
    update_by: str
    created_at: datetime
    updated_at: datetime

    def public(self) -> dict[str, Any]:
        """Wire form of the record."""
        return self.model_dump(mode="json", by_alias=True)


class UserResponse(BaseModel):
    """List and detail item of the user resource."""

    id: str
    email: str
    href: str
    name: str

    @classmethod
    def from_record(cls, record: UserRecord) -> "UserResponse":
        """Build the response item of ``record``."""
        return cls(
            id=record.id,
            email=record.email,
            href=f"/users/{record.id}",
            name=record.name or "",
        )
