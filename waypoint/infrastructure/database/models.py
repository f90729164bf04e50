"""Table models of the bundled user store."""

import uuid

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from waypoint.infrastructure.database.base import TimestampedModel

ID_LENGTH = 36


def _new_id() -> str:
    return str(uuid.uuid4())


class UserModel(TimestampedModel):
    """A row of the ``users`` table."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(ID_LENGTH), primary_key=True, default=_new_id
    )
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    create_by: Mapped[str] = mapped_column(String(64))
    update_by: Mapped[str] = mapped_column(String(64))

    def __repr__(self) -> str:
        """Return a string representation of the model instance."""
        return f"<{self.__class__.__name__}(id={self.id})>"
