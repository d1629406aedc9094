"""
Async SQL connection manager for the database cache backend.
SQLAlchemy 2.0 async engine; asyncpg in production, any async driver in tests.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)


class DatabaseManager:
    """Owns the async engine and the session factory."""

    def __init__(self, settings: Settings | None = None, url: Optional[str] = None) -> None:
        self._settings = settings or get_settings()
        self._url = url or self._settings.database_url
        self._engine: Optional[AsyncEngine] = None
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    def _engine_kwargs(self) -> dict:
        if not self._url.startswith("postgresql+asyncpg"):
            return {"echo": self._settings.debug}
        return {
            "pool_size": self._settings.db_pool_min,
            "max_overflow": self._settings.db_pool_max - self._settings.db_pool_min,
            "pool_pre_ping": True,
            "pool_recycle": 300,
            "echo": self._settings.debug,
            "connect_args": {
                "timeout": self._settings.db_command_timeout,
                "command_timeout": self._settings.db_command_timeout,
            },
        }

    async def connect(self, create_schema: bool = True) -> None:
        """Create the engine, session factory and (optionally) the cache table."""
        self._engine = create_async_engine(self._url, **self._engine_kwargs())
        self._session_factory = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )
        if create_schema:
            from shared.models.orm import Base

            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        logger.info("database_connected", url=self._settings.database_url_safe_log)

    async def disconnect(self) -> None:
        if self._engine:
            await self._engine.dispose()
            self._engine = None
            logger.info("database_disconnected")

    async def ping(self) -> bool:
        async with self.read_session() as session:
            await session.execute(text("SELECT 1"))
        return True

    @property
    def engine(self) -> AsyncEngine:
        if self._engine is None:
            raise RuntimeError("DatabaseManager not connected.")
        return self._engine

    @asynccontextmanager
    async def read_session(self) -> AsyncIterator[AsyncSession]:
        """Provide a read-only session (no commit)."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not connected.")
        async with self._session_factory() as session:
            yield session

    @asynccontextmanager
    async def write_session(self) -> AsyncIterator[AsyncSession]:
        """Provide a transactional session that commits on success."""
        if self._session_factory is None:
            raise RuntimeError("DatabaseManager not connected.")
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
