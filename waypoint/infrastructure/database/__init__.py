"""Relational persistence for the user resource.

Core components:
- **base**: Declarative base and timestamp columns
- **models**: The ``users`` table
- **session**: Engine, sessions, health check and teardown (``Database``)
- **repository**: ``SqlUserStore``, the ``UserStore`` implementation
"""

from waypoint.infrastructure.database.base import Base, TimestampedModel
from waypoint.infrastructure.database.models import UserModel
from waypoint.infrastructure.database.repository import SqlUserStore
from waypoint.infrastructure.database.session import Database, create_database_engine

__all__ = [
    "Base",
    "Database",
    "SqlUserStore",
    "TimestampedModel",
    "UserModel",
    "create_database_engine",
]
