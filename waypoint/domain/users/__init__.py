"""User resource: schemas, the store contract and the audited service."""

from waypoint.domain.users.models import (
    UserBody,
    UserIdParams,
    UserQuery,
    UserRecord,
    UserResponse,
)
from waypoint.domain.users.service import UserService
from waypoint.domain.users.store import (
    UserCreate,
    UserFilter,
    UserPage,
    UserStore,
    UserUpdate,
)

__all__ = [
    "UserBody",
    "UserCreate",
    "UserFilter",
    "UserIdParams",
    "UserPage",
    "UserQuery",
    "UserRecord",
    "UserResponse",
    "UserService",
    "UserStore",
    "UserUpdate",
]
