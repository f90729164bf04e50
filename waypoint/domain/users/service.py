"""User operations with per-call audit entries.

Each store call is recorded in the request's audit pair:

- detail: an Input entry with the call descriptor and an Output entry with
  the result, or the error message on failure, under one fresh invoke id
- summary: a success block (``"200"``/``"201"``) or an error block
  (``"500"``, ``"404"`` for lookups by id)

Failures are re-raised so they are classified once, by the global error
handler. ``create_user`` is the exception: a failed insert is recorded and
then answered as an empty result instead of an error.
"""

from collections.abc import Awaitable, Callable
from typing import Any, Final

from loguru import logger

from waypoint.core.audit import AuditLogger
from waypoint.core.exceptions import NotFoundError
from waypoint.core.observability import trace_operation
from waypoint.domain.users.models import UserBody, UserQuery, UserRecord
from waypoint.domain.users.store import (
    UserCreate,
    UserFilter,
    UserPage,
    UserStore,
    UserUpdate,
)

NODE: Final[str] = "postgres"
USER_NOT_FOUND: Final[str] = "User not found"


class UserService:
    """Audited access to a ``UserStore``.

    Args:
        store: The persistence backend.
    """

    def __init__(self, store: UserStore) -> None:
        self.store = store

    async def _call[T](
        self,
        audit: AuditLogger,
        cmd: str,
        descriptor: Any,  # noqa: ANN401 - recorded verbatim
        operation: Callable[[], Awaitable[T]],
        *,
        success_code: str = "200",
        error_code: str = "500",
    ) -> T:
        invoke = audit.detail.create_invoke()
        audit.detail.add_input_request(NODE, cmd, invoke, descriptor)

        try:
            with trace_operation(f"{NODE}.{cmd}", scenario=audit.detail.scenario):
                result = await operation()
        except Exception as exc:
            audit.detail.add_output_request(NODE, cmd, invoke, str(exc))
            audit.summary.add_error_block(NODE, cmd, error_code, str(exc))
            raise

        audit.detail.add_output_request(NODE, cmd, invoke, result)
        audit.summary.add_success_block(NODE, cmd, success_code, "success")
        return result

    async def get_all_users(self, query: UserQuery, audit: AuditLogger) -> UserPage:
        """Return one page of users matching ``query``."""
        user_filter = UserFilter(
            email=query.email,
            name=query.name,
            skip=(query.page - 1) * query.limit,
            take=query.limit,
        )
        return await self._call(
            audit,
            "get-all-user",
            user_filter.describe(),
            lambda: self.store.find_many(user_filter),
        )

    async def create_user(self, body: UserBody, audit: AuditLogger) -> UserRecord | None:
        """Insert a user; a failed insert is recorded and yields None."""
        user = UserCreate(email=body.email, name=body.name)
        try:
            return await self._call(
                audit,
                "insert-user",
                user.describe(),
                lambda: self.store.create(user),
                success_code="201",
            )
        except Exception:  # noqa: BLE001 - failed inserts answer with an empty result
            logger.opt(exception=True).warning("User insert failed, answering empty")
            return None

    async def get_user_by_id(self, user_id: str, audit: AuditLogger) -> UserRecord:
        """Return the user with ``user_id``.

        Raises:
            NotFoundError: If no such user exists.
        """

        async def find() -> UserRecord:
            record = await self.store.find_by_id(user_id)
            if record is None:
                raise NotFoundError(USER_NOT_FOUND, context={"user_id": user_id})
            return record

        return await self._call(
            audit,
            "get-user-by-id",
            {"where": {"id": user_id}},
            find,
            error_code="404",
        )

    async def update_user(
        self, user_id: str, body: UserBody, audit: AuditLogger
    ) -> UserRecord:
        """Replace email and name of the user with ``user_id``."""
        changes = UserUpdate(email=body.email, name=body.name)
        return await self._call(
            audit,
            "update-user",
            changes.describe(user_id),
            lambda: self.store.update(user_id, changes),
        )

    async def delete_user(self, user_id: str, audit: AuditLogger) -> UserRecord:
        """Delete the user with ``user_id``."""
        return await self._call(
            audit,
            "delete-user",
            {"where": {"id": user_id}},
            lambda: self.store.delete(user_id),
        )
