"""The narrow data-access contract the user service depends on.

Any storage can back the service as long as it implements ``UserStore``:
filtered/paged reads return a page plus the total count, writes return the
stored record, and failures raise an exception with a message. A lookup
that finds nothing returns None; an update or delete of a missing record
raises.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Protocol

from waypoint.domain.users.models import UserRecord

SYSTEM_ACTOR = "system"


@dataclass(frozen=True, slots=True)
class UserFilter:
    """Substring filters, ordering and paging of a user list read."""

    email: str | None = None
    name: str | None = None
    order_by: str = "email"
    skip: int = 0
    take: int = 10

    def describe(self) -> dict[str, Any]:
        """The descriptor recorded in audit logs."""
        return {
            "where": {
                "email": {"contains": self.email},
                "name": {"contains": self.name},
            },
            "orderBy": {self.order_by: "asc"},
            "take": self.take,
            "skip": self.skip,
        }


@dataclass(frozen=True, slots=True)
class UserPage:
    """One page of users and the count of all matches."""

    data: list[UserRecord] = field(default_factory=list)
    total: int = 0


@dataclass(frozen=True, slots=True)
class UserCreate:
    """Fields of a new user."""

    email: str
    name: str | None = None
    create_by: str = SYSTEM_ACTOR
    update_by: str = SYSTEM_ACTOR

    def describe(self) -> dict[str, Any]:
        """The descriptor recorded in audit logs."""
        return {"data": asdict(self)}


@dataclass(frozen=True, slots=True)
class UserUpdate:
    """Fields replaced by an update."""

    email: str
    name: str | None = None
    update_by: str = SYSTEM_ACTOR

    def describe(self, user_id: str) -> dict[str, Any]:
        """The descriptor recorded in audit logs."""
        return {"where": {"id": user_id}, "data": asdict(self)}


class UserStore(Protocol):
    """Persistence operations of the user resource."""

    async def find_many(self, user_filter: UserFilter) -> UserPage:
        """Return the matching page and the total number of matches."""
        ...

    async def create(self, user: UserCreate) -> UserRecord:
        """Insert a user and return the stored record."""
        ...

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Return the user with ``user_id``, or None."""
        ...

    async def update(self, user_id: str, changes: UserUpdate) -> UserRecord:
        """Update the user with ``user_id`` and return the stored record."""
        ...

    async def delete(self, user_id: str) -> UserRecord:
        """Delete the user with ``user_id`` and return the removed record."""
        ...
