"""In-memory collaborators shared by unit and integration tests."""

import uuid
from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from waypoint.core.audit import LogType
from waypoint.core.exceptions import NotFoundError
from waypoint.domain.users import (
    UserCreate,
    UserFilter,
    UserPage,
    UserRecord,
    UserUpdate,
)


class RecordingSink:
    """Audit sink keeping every emitted record in memory."""

    def __init__(self) -> None:
        self.records: list[tuple[LogType, dict[str, Any], str]] = []

    def emit(self, kind: LogType, record: Mapping[str, Any], level: str) -> None:
        """Keep the record."""
        self.records.append((kind, dict(record), level))

    def of(self, kind: LogType) -> list[dict[str, Any]]:
        """Records of one kind, in emission order."""
        return [record for k, record, _ in self.records if k is kind]


class InMemoryUserStore:
    """``UserStore`` backed by a dict, with optional injected failures."""

    def __init__(self) -> None:
        self.users: dict[str, UserRecord] = {}
        self.failures: dict[str, Exception] = {}
        self.filters: list[UserFilter] = []

    def add(self, email: str, name: str | None = None) -> UserRecord:
        """Insert a user directly."""
        now = datetime(2024, 1, 1, tzinfo=UTC)
        record = UserRecord(
            id=str(uuid.uuid4()),
            email=email,
            name=name,
            create_by="system",
            update_by="system",
            created_at=now,
            updated_at=now,
        )
        self.users[record.id] = record
        return record

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.failures:
            raise self.failures[operation]

    async def find_many(self, user_filter: UserFilter) -> UserPage:
        """Filter by substring, order by email and page."""
        self._maybe_fail("find_many")
        self.filters.append(user_filter)
        matches = sorted(
            (
                user
                for user in self.users.values()
                if (user_filter.email is None or user_filter.email in user.email)
                and (
                    user_filter.name is None
                    or (user.name is not None and user_filter.name in user.name)
                )
            ),
            key=lambda user: user.email,
        )
        page = matches[user_filter.skip : user_filter.skip + user_filter.take]
        return UserPage(data=page, total=len(matches))

    async def create(self, user: UserCreate) -> UserRecord:
        """Insert a user."""
        self._maybe_fail("create")
        return self.add(user.email, user.name)

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Look a user up."""
        self._maybe_fail("find_by_id")
        return self.users.get(user_id)

    async def update(self, user_id: str, changes: UserUpdate) -> UserRecord:
        """Replace email and name."""
        self._maybe_fail("update")
        if user_id not in self.users:
            msg = "Record to update not found"
            raise NotFoundError(msg)
        record = self.users[user_id].model_copy(
            update={
                "email": changes.email,
                "name": changes.name,
                "update_by": changes.update_by,
            }
        )
        self.users[user_id] = record
        return record

    async def delete(self, user_id: str) -> UserRecord:
        """Remove a user."""
        self._maybe_fail("delete")
        if user_id not in self.users:
            msg = "Record to delete does not exist"
            raise NotFoundError(msg)
        return self.users.pop(user_id)


class StepClock:
    """Deterministic clock advancing by ``step`` on every read."""

    def __init__(
        self,
        start: datetime | None = None,
        step: timedelta = timedelta(milliseconds=5),
    ) -> None:
        self.now = start or datetime(2024, 5, 17, 8, 30, 15, 123456, tzinfo=UTC)
        self.step = step

    def __call__(self) -> datetime:
        """Return the current instant, then advance."""
        current = self.now
        self.now = self.now + self.step
        return current
