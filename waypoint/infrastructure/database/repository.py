"""SQLAlchemy implementation of the ``UserStore`` contract."""

from loguru import logger
from sqlalchemy import func, select
from sqlalchemy.sql.elements import ColumnElement

from waypoint.core.exceptions import NotFoundError
from waypoint.domain.users import (
    UserCreate,
    UserFilter,
    UserPage,
    UserRecord,
    UserUpdate,
)
from waypoint.infrastructure.database.models import UserModel
from waypoint.infrastructure.database.session import Database

ORDERABLE_COLUMNS = {
    "email": UserModel.email,
    "name": UserModel.name,
    "created_at": UserModel.created_at,
}


def _conditions(user_filter: UserFilter) -> list[ColumnElement[bool]]:
    conditions: list[ColumnElement[bool]] = []
    if user_filter.email is not None:
        conditions.append(UserModel.email.contains(user_filter.email, autoescape=True))
    if user_filter.name is not None:
        conditions.append(UserModel.name.contains(user_filter.name, autoescape=True))
    return conditions


class SqlUserStore:
    """User persistence on a relational database.

    Every operation runs in its own session, so each call is one
    transaction.

    Args:
        database: The engine/session owner.
    """

    def __init__(self, database: Database) -> None:
        self.database = database

    async def find_many(self, user_filter: UserFilter) -> UserPage:
        """Return the matching page and the total number of matches."""
        conditions = _conditions(user_filter)
        order_column = ORDERABLE_COLUMNS.get(user_filter.order_by, UserModel.email)

        async with self.database.session() as session:
            rows = await session.scalars(
                select(UserModel)
                .where(*conditions)
                .order_by(order_column.asc())
                .offset(user_filter.skip)
                .limit(user_filter.take)
            )
            total = await session.scalar(
                select(func.count()).select_from(UserModel).where(*conditions)
            )
            data = [UserRecord.model_validate(row) for row in rows]

        logger.debug("Fetched {} of {} users", len(data), total)
        return UserPage(data=data, total=total or 0)

    async def create(self, user: UserCreate) -> UserRecord:
        """Insert a user and return the stored record."""
        async with self.database.session() as session:
            row = UserModel(
                email=user.email,
                name=user.name,
                create_by=user.create_by,
                update_by=user.update_by,
            )
            session.add(row)
            await session.flush()
            await session.refresh(row)
            record = UserRecord.model_validate(row)

        logger.debug("Created user with ID: {}", record.id)
        return record

    async def find_by_id(self, user_id: str) -> UserRecord | None:
        """Return the user with ``user_id``, or None."""
        async with self.database.session() as session:
            row = await session.get(UserModel, user_id)
            return UserRecord.model_validate(row) if row is not None else None

    async def update(self, user_id: str, changes: UserUpdate) -> UserRecord:
        """Update the user with ``user_id``.

        Raises:
            NotFoundError: If no such user exists.
        """
        async with self.database.session() as session:
            row = await session.get(UserModel, user_id)
            if row is None:
                msg = "Record to update not found"
                raise NotFoundError(msg, context={"user_id": user_id})

            row.email = changes.email
            row.name = changes.name
            row.update_by = changes.update_by
            await session.flush()
            await session.refresh(row)
            return UserRecord.model_validate(row)

    async def delete(self, user_id: str) -> UserRecord:
        """Delete the user with ``user_id``.

        Raises:
            NotFoundError: If no such user exists.
        """
        async with self.database.session() as session:
            row = await session.get(UserModel, user_id)
            if row is None:
                msg = "Record to delete does not exist"
                raise NotFoundError(msg, context={"user_id": user_id})

            record = UserRecord.model_validate(row)
            await session.delete(row)

        logger.debug("Deleted user with ID: {}", user_id)
        return record
