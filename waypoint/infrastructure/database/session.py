"""Async database engine and session lifecycle management.

``Database`` owns one engine and one session factory, both created lazily
from an injected ``DatabaseConfig``:

- **Connection pooling**: pool size, overflow, timeout and pre-ping from config
- **Sessions**: committed on success, rolled back on error, always closed
- **Health checks**: ``check_connection`` runs ``SELECT 1``
- **Schema**: ``create_schema`` creates missing tables at startup
- **Cleanup**: ``close`` disposes the engine during application teardown
"""

import threading
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from loguru import logger
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from waypoint.core.config import DatabaseConfig
from waypoint.infrastructure.database.base import Base

POOL_RECYCLE_SECONDS = 3600  # 1 hour
COMMAND_TIMEOUT_SECONDS = 60


def create_database_engine(config: DatabaseConfig) -> AsyncEngine:
    """Create an async SQLAlchemy engine with connection pooling.

    Args:
        config: Database configuration.

    Returns:
        AsyncEngine: Configured async engine instance.
    """
    engine = create_async_engine(
        config.database_url,
        pool_size=config.pool_size,
        max_overflow=config.max_overflow,
        pool_timeout=config.pool_timeout,
        pool_pre_ping=config.pool_pre_ping,
        echo=config.echo,
        pool_recycle=POOL_RECYCLE_SECONDS,
        connect_args={
            "server_settings": {"jit": "off"},
            "command_timeout": COMMAND_TIMEOUT_SECONDS,
        },
    )

    logger.info(
        "Created database engine - pool_size: {}, max_overflow: {}",
        config.pool_size,
        config.max_overflow,
    )
    return engine


class Database:
    """Engine and session factory of one application.

    Args:
        config: Database configuration.
    """

    def __init__(self, config: DatabaseConfig) -> None:
        self.config = config
        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._lock = threading.Lock()

    @property
    def engine(self) -> AsyncEngine:
        """The engine, created on first use."""
        if self._engine is None:
            with self._lock:
                # Double-checked locking pattern
                if self._engine is None:
                    self._engine = create_database_engine(self.config)
        return self._engine

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        """The session factory, created on first use."""
        if self._session_factory is None:
            with self._lock:
                if self._session_factory is None:
                    self._session_factory = async_sessionmaker(
                        self.engine,
                        class_=AsyncSession,
                        expire_on_commit=False,
                    )
                    logger.info("Created async session factory")
        return self._session_factory

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """Open a session that commits on success and rolls back on error.

        Yields:
            AsyncGenerator[AsyncSession]: Database session.

        Raises:
            Exception: Any exception raised while the session is in use is
                re-raised after rollback.

        Example:
            async with database.session() as session:
                result = await session.execute(select(UserModel))
        """
        async with self.session_factory() as session:
            logger.debug("Created new database session")
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                logger.debug("Database session rolled back due to error")
                raise

    async def check_connection(self) -> tuple[bool, str | None]:
        """Check if the database answers.

        Returns:
            tuple[bool, str | None]: Health flag and error message, if any.
        """
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                _ = result.scalar()
        except (SQLAlchemyError, OSError) as e:
            return False, str(e)
        else:
            return True, None

    async def create_schema(self) -> None:
        """Create missing tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database schema ready")

    async def close(self) -> None:
        """Dispose the engine and drop pooled connections."""
        if self._engine is not None:
            await self._engine.dispose()
            logger.info("Database engine disposed")
            self._engine = None
            self._session_factory = None
