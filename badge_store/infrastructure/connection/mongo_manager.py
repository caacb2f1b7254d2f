"""
Document Store Connection Manager (MongoDB / motor)

Owns the AsyncIOMotorClient for the backup persistent store. The driver
keeps its own pool and server monitor; this manager adds the shared
state machine, backoff and heartbeat on top so every backend behaves the
same way to the storage service.

Operations receive the key/value collection.

Author: System Architect
Date: 2026-01-12
"""

from contextlib import asynccontextmanager
from typing import Any

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.exceptions import ConfigurationError, StorageConnectionError
from badge_store.infrastructure.connection.base import ConnectionManager


class MongoConnectionManager(ConnectionManager):
    """Connection manager for the document backup store."""

    unavailable_error = StorageConnectionError

    def __init__(self, settings: Settings | None = None, uri: str | None = None, **kwargs: Any):
        self._settings = settings or get_settings()
        db = self._settings.backup_db
        self._uri = uri or db.BACKUP_DB_URI
        if not self._uri:
            raise ConfigurationError(
                "BACKUP_DB_URI is not configured",
                details={"setting": "BACKUP_DB_URI"},
            )
        kwargs.setdefault("connect_timeout", db.BACKUP_DB_CONNECT_TIMEOUT_MS / 1000)
        kwargs.setdefault("operation_timeout", db.BACKUP_DB_SOCKET_TIMEOUT_MS / 1000)
        super().__init__("backup", self._uri, settings=self._settings, **kwargs)

        self._client: AsyncIOMotorClient | None = None

    async def _open(self) -> None:
        db = self._settings.backup_db
        self._client = AsyncIOMotorClient(
            self._uri,
            maxPoolSize=db.BACKUP_DB_MAX_POOL_SIZE,
            minPoolSize=db.BACKUP_DB_MIN_POOL_SIZE,
            serverSelectionTimeoutMS=db.BACKUP_DB_SERVER_SELECTION_TIMEOUT_MS,
            connectTimeoutMS=db.BACKUP_DB_CONNECT_TIMEOUT_MS,
            socketTimeoutMS=db.BACKUP_DB_SOCKET_TIMEOUT_MS,
            heartbeatFrequencyMS=10000,
            retryReads=True,
            retryWrites=True,
            tz_aware=True,
        )
        await self._client.admin.command("ping")

    async def _probe(self) -> None:
        if self._client is None:
            raise StorageConnectionError("Mongo client not initialized")
        await self._client.admin.command("ping")

    async def _close(self) -> None:
        client = self._client
        self._client = None
        if client is not None:
            client.close()

    def collection(self) -> AsyncIOMotorCollection:
        if self._client is None:
            raise StorageConnectionError("Mongo client not initialized")
        db = self._settings.backup_db
        return self._client[db.BACKUP_DB_NAME][db.BACKUP_DB_COLLECTION]

    @asynccontextmanager
    async def _acquire(self):
        yield self.collection()

    def get_connection_status(self) -> dict[str, Any]:
        status = super().get_connection_status()
        db = self._settings.backup_db
        status["database"] = db.BACKUP_DB_NAME
        status["collection"] = db.BACKUP_DB_COLLECTION
        return status
