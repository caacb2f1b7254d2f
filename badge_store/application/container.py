"""
Service Container - explicit wiring of the storage layer

Connection managers, cache and storage service are constructed here once
and owned by the process lifecycle:

    ServiceContainer(settings)
        ├── RedisConnectionManager   (when CACHE_BACKEND=redis and REDIS_ENABLED)
        ├── SqlConnectionManager     (when PRIMARY_DB_URL is set)
        ├── MongoConnectionManager   (when BACKUP_DB_URI is set)
        ├── cache service            (create_cache_service)
        ├── SqlRecordStore / MongoRecordStore
        ├── StorageService
        ├── BackgroundPersistenceQueue
        └── platform accessors (once fetchers are registered)

start() connects every backend without failing on an unreachable one;
close() shuts everything down in reverse order.

Author: System Architect
Date: 2026-01-12
"""

from typing import Any

from badge_store.application.accessors import (
    BilibiliAccessor,
    CsdnAccessor,
    GitHubAccessor,
    JuejinAccessor,
    LeetCodeAccessor,
    PlatformDataAccessor,
)
from badge_store.application.accessors.base import Fetcher
from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.logging.logger import get_logger
from badge_store.core.resilience.background import BackgroundPersistenceQueue
from badge_store.core.resilience.failures import describe_error
from badge_store.infrastructure.cache.base import BaseCacheService
from badge_store.infrastructure.cache.factory import create_cache_service
from badge_store.infrastructure.connection.base import ConnectionManager
from badge_store.infrastructure.connection.mongo_manager import MongoConnectionManager
from badge_store.infrastructure.connection.redis_manager import RedisConnectionManager
from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager
from badge_store.infrastructure.storage.mongo_store import MongoRecordStore
from badge_store.infrastructure.storage.sql_store import SqlRecordStore
from badge_store.infrastructure.storage.storage_service import StorageService

logger = get_logger(__name__)

ACCESSOR_TYPES: dict[str, type[PlatformDataAccessor]] = {
    "github": GitHubAccessor,
    "leetcode": LeetCodeAccessor,
    "csdn": CsdnAccessor,
    "juejin": JuejinAccessor,
    "bilibili": BilibiliAccessor,
}


class ServiceContainer:
    """
    Builds and owns every storage-layer component.

    Args:
        settings: Configuration (defaults to get_settings())
        fetchers: Upstream fetch coroutines per platform name; an accessor
            is created for each platform that has one
    """

    def __init__(self, settings: Settings | None = None, fetchers: dict[str, Fetcher] | None = None):
        self.settings = settings or get_settings()

        self.redis_manager: RedisConnectionManager | None = None
        if self.settings.cache.CACHE_BACKEND == "redis" and self.settings.redis.REDIS_ENABLED:
            self.redis_manager = RedisConnectionManager(self.settings)

        self.primary_manager: SqlConnectionManager | None = None
        self.primary_store: SqlRecordStore | None = None
        if self.settings.primary_db.PRIMARY_DB_URL:
            self.primary_manager = SqlConnectionManager(self.settings)
            self.primary_store = SqlRecordStore(
                self.primary_manager, sweep_interval=self.settings.storage.STORAGE_SWEEP_INTERVAL
            )

        self.backup_manager: MongoConnectionManager | None = None
        self.backup_store: MongoRecordStore | None = None
        if self.settings.backup_db.BACKUP_DB_URI:
            self.backup_manager = MongoConnectionManager(self.settings)
            self.backup_store = MongoRecordStore(self.backup_manager)

        self.cache: BaseCacheService = create_cache_service(self.settings, self.redis_manager)
        self.storage = StorageService.from_settings(
            self.cache,
            primary=self.primary_store,
            backup=self.backup_store,
            settings=self.settings,
        )
        self.queue = BackgroundPersistenceQueue()

        self.accessors: dict[str, PlatformDataAccessor] = {}
        for platform, fetcher in (fetchers or {}).items():
            self.register_fetcher(platform, fetcher)

        self._started = False

    def register_fetcher(self, platform: str, fetcher: Fetcher) -> PlatformDataAccessor:
        """Create (or replace) the accessor for ``platform``."""
        try:
            accessor_type = ACCESSOR_TYPES[platform]
        except KeyError:
            raise ValueError(f"Unknown platform '{platform}'; expected one of {sorted(ACCESSOR_TYPES)}") from None
        accessor = accessor_type(
            self.storage,
            fetcher,
            queue=self.queue,
            staleness_seconds=self.settings.app.ACCESSOR_STALENESS_SECONDS,
        )
        self.accessors[platform] = accessor
        return accessor

    def managers(self) -> list[ConnectionManager]:
        return [m for m in (self.redis_manager, self.primary_manager, self.backup_manager) if m is not None]

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self) -> None:
        """Connect backends, create schemas and start background tasks."""
        if self._started:
            return

        for manager in self.managers():
            await manager.connect()

        for store in (self.primary_store, self.backup_store):
            if store is None:
                continue
            try:
                await store.initialize()
            except Exception as e:
                logger.warning(
                    "Record store initialization failed; it will be used once reachable",
                    stage=Stage.INITIALIZATION,
                    backend=store.name,
                    error=describe_error(e),
                )
            await store.start()

        await self.cache.start()
        await self.queue.start()
        self._started = True

        logger.info("Service container started", stage=Stage.INITIALIZATION, **self.storage.get_storage_status())

    async def close(self) -> None:
        """Stop background work and disconnect every backend. Idempotent."""
        await self.queue.stop()
        await self.cache.close()
        for store in (self.primary_store, self.backup_store):
            if store is not None:
                await store.close()
        for manager in reversed(self.managers()):
            await manager.disconnect()
        self._started = False
        logger.info("Service container closed", stage=Stage.SHUTDOWN)

    # =========================================================================
    # Observability
    # =========================================================================

    def connection_status(self) -> dict[str, Any]:
        return {manager.name: manager.get_connection_status() for manager in self.managers()}

    async def health(self) -> dict[str, Any]:
        components = {}
        for manager in self.managers():
            components[manager.name] = await manager.health_check()
        storage = self.storage.get_storage_status()
        status = "healthy"
        if storage["fallback_mode"] == "unavailable":
            status = "unhealthy"
        elif storage["fallback_mode"] != "none":
            status = "degraded"
        return {
            "status": status,
            "storage": storage,
            "cache": self.cache.get_stats().to_dict(),
            "components": components,
            "background_queue": self.queue.metrics(),
        }
