"""
Storage Service - cache + persistent tiers under one strategy

Architecture:
    StorageService
        ├── StorageStrategyHandler   (CacheOnly | PersistentOnly | Hybrid)
        │       └── StorageTiers     (cache, primary, backup, timeout)
        └── get_storage_status()     (reachability + active fallback mode)

Failures of a single backend are absorbed by falling back to the next
tier. Only exhaustion of every tier is visible to callers, as ``None``
from get() and ``False`` from set()/delete()/clear(). Caller errors
(unserializable values, invalid keys) are raised before any backend is
touched.

Author: System Architect
Date: 2026-01-12
"""

from typing import Any

from badge_store.core.config.constants import DurabilityPolicy, FallbackMode, Stage, StorageStrategy
from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.interfaces.cache import CacheService
from badge_store.core.interfaces.storage import RecordStore
from badge_store.core.logging.logger import get_logger
from badge_store.core.models.records import validate_record_input
from badge_store.core.resilience.failures import describe_error
from badge_store.infrastructure.storage.strategies import (
    StorageStrategyHandler,
    StorageTiers,
    TierAvailability,
    build_strategy,
)

logger = get_logger(__name__)


class StorageService:
    """
    Unified storage facade.

    Args:
        cache: Cache service (memory, Redis or no-op)
        primary: Primary record store, or None when not configured
        backup: Backup record store, or None when not configured
        strategy: Storage strategy (default HYBRID)
        default_ttl: TTL applied when set() gets None/0
        durability: Threshold a HYBRID write must reach to succeed
        operation_timeout: Seconds each backend call may take
    """

    def __init__(
        self,
        cache: CacheService,
        primary: RecordStore | None = None,
        backup: RecordStore | None = None,
        strategy: StorageStrategy | str = StorageStrategy.HYBRID,
        default_ttl: int = 300,
        durability: DurabilityPolicy | str = DurabilityPolicy.BEST_EFFORT,
        operation_timeout: float = 10.0,
    ):
        strategy = StorageStrategy(strategy)
        if strategy != StorageStrategy.CACHE_ONLY and primary is None and backup is None:
            logger.warning(
                "No persistent store configured, using cache_only",
                stage=Stage.INITIALIZATION,
                requested=strategy.value,
            )
            strategy = StorageStrategy.CACHE_ONLY

        self._tiers = StorageTiers(
            cache=cache,
            primary=primary,
            backup=backup,
            operation_timeout=operation_timeout,
        )
        self._handler: StorageStrategyHandler = build_strategy(strategy, self._tiers, durability)
        self._default_ttl = default_ttl

        logger.info(
            "Storage service initialized",
            stage=Stage.INITIALIZATION,
            strategy=strategy.value,
            cache=cache.name,
            primary=primary.name if primary else None,
            backup=backup.name if backup else None,
            durability=self._handler.durability.value,
        )

    @classmethod
    def from_settings(
        cls,
        cache: CacheService,
        primary: RecordStore | None = None,
        backup: RecordStore | None = None,
        settings: Settings | None = None,
    ) -> "StorageService":
        settings = settings or get_settings()
        storage = settings.storage
        return cls(
            cache=cache,
            primary=primary,
            backup=backup,
            strategy=storage.STORAGE_STRATEGY,
            default_ttl=storage.STORAGE_DEFAULT_TTL,
            durability=storage.STORAGE_DURABILITY,
            operation_timeout=storage.STORAGE_OPERATION_TIMEOUT,
        )

    @property
    def strategy(self) -> StorageStrategy:
        return self._handler.kind

    @property
    def cache(self) -> CacheService:
        return self._tiers.cache

    @property
    def primary(self) -> RecordStore | None:
        return self._tiers.primary

    @property
    def backup(self) -> RecordStore | None:
        return self._tiers.backup

    # =========================================================================
    # Operations
    # =========================================================================

    async def get(self, key: str) -> Any | None:
        """Return the stored value, or None if no tier has it (or none answered)."""
        value = await self._handler.get(key)
        logger.debug("Storage get", stage=Stage.STORE_GET, cache_key=key, found=value is not None)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store ``value`` under ``key``.

        Raises:
            RecordValidationError: Empty key or a value that is not JSON-serializable
        """
        validate_record_input(key, value)
        effective_ttl = ttl if ttl and ttl > 0 else self._default_ttl
        ok = await self._handler.set(key, value, effective_ttl)
        logger.debug("Storage set", stage=Stage.STORE_SET, cache_key=key, ttl=effective_ttl, success=ok)
        return ok

    async def delete(self, key: str) -> bool:
        ok = await self._handler.delete(key)
        logger.debug("Storage delete", stage=Stage.STORE_DELETE, cache_key=key, success=ok)
        return ok

    async def clear(self) -> bool:
        ok = await self._handler.clear()
        logger.info("Storage cleared", stage=Stage.STORE_DELETE, strategy=self.strategy.value, success=ok)
        return ok

    async def exists(self, key: str) -> bool:
        return await self._handler.exists(key)

    # =========================================================================
    # Observability
    # =========================================================================

    def get_storage_status(self) -> dict[str, Any]:
        """
        Which backends are reachable and which fallback is active.

        Read-only and never raises.
        """
        try:
            availability = TierAvailability(
                cache=self._available(self._tiers.cache),
                primary=self._available(self._tiers.primary),
                backup=self._available(self._tiers.backup),
            )
            mode = self._handler.fallback_mode(availability)
        except Exception as e:
            logger.error("Storage status unavailable", stage=Stage.STORE_GET, error=describe_error(e))
            availability = TierAvailability(cache=False, primary=False, backup=False)
            mode = FallbackMode.UNAVAILABLE

        return {
            "strategy": self.strategy.value,
            "cache_connected": availability.cache,
            "primary_connected": availability.primary,
            "backup_connected": availability.backup,
            "fallback_mode": mode.value,
        }

    @staticmethod
    def _available(backend) -> bool:
        if backend is None:
            return False
        try:
            return bool(backend.is_available())
        except Exception:
            return False
