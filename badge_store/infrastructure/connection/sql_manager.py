"""
Relational Connection Manager (SQLAlchemy async)

Owns the AsyncEngine for the primary persistent store. PostgreSQL via
asyncpg in production, SQLite via aiosqlite for local runs and tests.

In-memory SQLite shares one connection through a StaticPool.

Pool Configuration (PostgreSQL):
- pool_size = PRIMARY_DB_POOL_MIN, overflow up to PRIMARY_DB_POOL_MAX
- pool_pre_ping so stale sockets are replaced transparently
- connect timeout and per-command timeout passed to asyncpg

Operations receive an AsyncSession inside a transaction that commits on
success and rolls back on any exception.

Author: System Architect
Date: 2026-01-12
"""

from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.exceptions import ConfigurationError, StorageConnectionError
from badge_store.infrastructure.connection.base import ConnectionManager


class SqlConnectionManager(ConnectionManager):
    """Connection manager for the relational primary store."""

    unavailable_error = StorageConnectionError

    def __init__(self, settings: Settings | None = None, url: str | None = None, **kwargs: Any):
        self._settings = settings or get_settings()
        db = self._settings.primary_db
        self._url = url or db.PRIMARY_DB_URL
        if not self._url:
            raise ConfigurationError(
                "PRIMARY_DB_URL is not configured",
                details={"setting": "PRIMARY_DB_URL"},
            )
        kwargs.setdefault("connect_timeout", db.PRIMARY_DB_CONNECT_TIMEOUT)
        kwargs.setdefault("operation_timeout", db.PRIMARY_DB_OPERATION_TIMEOUT)
        super().__init__("primary", self._url, settings=self._settings, **kwargs)

        self._engine: AsyncEngine | None = None
        self._session_factory: async_sessionmaker[AsyncSession] | None = None

    @property
    def dialect(self) -> str:
        return make_url(self._url).get_backend_name()

    def _engine_options(self) -> dict[str, Any]:
        db = self._settings.primary_db
        if self.dialect == "sqlite":
            if make_url(self._url).database in (None, "", ":memory:"):
                return {"poolclass": StaticPool}
            return {}
        options: dict[str, Any] = {
            "pool_size": db.PRIMARY_DB_POOL_MIN,
            "max_overflow": max(db.PRIMARY_DB_POOL_MAX - db.PRIMARY_DB_POOL_MIN, 0),
            "pool_pre_ping": True,
            "pool_timeout": db.PRIMARY_DB_CONNECT_TIMEOUT,
        }
        if make_url(self._url).get_driver_name() == "asyncpg":
            options["connect_args"] = {
                "timeout": db.PRIMARY_DB_CONNECT_TIMEOUT,
                "command_timeout": db.PRIMARY_DB_OPERATION_TIMEOUT,
            }
        return options

    async def _open(self) -> None:
        self._engine = create_async_engine(self._url, **self._engine_options())
        self._session_factory = async_sessionmaker(self._engine, expire_on_commit=False)
        await self._probe()

    async def _probe(self) -> None:
        if self._engine is None:
            raise StorageConnectionError("Engine not initialized")
        async with self._engine.connect() as conn:
            await conn.execute(text("SELECT 1"))

    async def _close(self) -> None:
        engine = self._engine
        self._engine = None
        self._session_factory = None
        if engine is not None:
            await engine.dispose()

    @asynccontextmanager
    async def _acquire(self):
        if self._session_factory is None:
            raise StorageConnectionError("Session factory not initialized")
        async with self._session_factory.begin() as session:
            yield session

    def get_connection_status(self) -> dict[str, Any]:
        status = super().get_connection_status()
        status["dialect"] = self.dialect
        if self._engine is not None:
            status["pool"] = self._engine.pool.status()
        return status
