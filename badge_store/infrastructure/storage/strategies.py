"""
Storage Strategies

A closed set of variants, one per configured strategy:

    CacheOnlyStrategy       every operation goes to the cache service
    PersistentOnlyStrategy  primary record store, backup on primary error
    HybridStrategy          cache first, then primary, then backup

Fallback order (HYBRID):

    get:    cache ──miss──► primary ──error──► backup
            (a primary *miss* is final; nothing is written back to the cache)

    set:    cache (best effort)  +  primary ──error──► backup
            success = cache OR persistent  (durability=best_effort)
                    = persistent           (durability=require_persistent)

    delete / clear: cache  +  primary ──error──► backup, success = OR

Every backend call is raced against ``operation_timeout``; a timeout is
handled exactly like a backend error. Caller errors (invalid records,
unserializable values, constraint violations) propagate instead of
triggering a fallback.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from badge_store.core.config.constants import DurabilityPolicy, FallbackMode, Stage, StorageStrategy
from badge_store.core.exceptions import (
    CacheSerializationError,
    ConstraintViolationError,
    RecordValidationError,
    ValidationError,
)
from badge_store.core.interfaces.cache import CacheService
from badge_store.core.interfaces.storage import RecordStore
from badge_store.core.logging.logger import get_logger
from badge_store.core.resilience.failures import describe_error

logger = get_logger(__name__)

T = TypeVar("T")

# Raised because the caller passed something no backend accepts
CALLER_ERRORS = (CacheSerializationError, RecordValidationError, ConstraintViolationError, ValidationError)


class BackendFailure(Exception):
    """A single tier failed or timed out; the next tier may be tried."""

    def __init__(self, backend: str, operation: str, error: str):
        super().__init__(f"{backend}.{operation}: {error}")
        self.backend = backend
        self.operation = operation
        self.error = error


@dataclass
class StorageTiers:
    """The backends a strategy may use, plus the per-call timeout."""

    cache: CacheService
    primary: RecordStore | None = None
    backup: RecordStore | None = None
    operation_timeout: float = 10.0

    def persistent_stores(self) -> list[RecordStore]:
        return [store for store in (self.primary, self.backup) if store is not None]

    async def call(self, backend: str, operation: str, fn: Callable[[], Awaitable[T]]) -> T:
        """
        Run one backend call under the timeout.

        Raises:
            BackendFailure: The backend raised or did not answer in time
            CALLER_ERRORS: Propagated unchanged
        """
        try:
            return await asyncio.wait_for(fn(), timeout=self.operation_timeout)
        except CALLER_ERRORS:
            raise
        except asyncio.TimeoutError:
            raise BackendFailure(backend, operation, f"timed out after {self.operation_timeout}s") from None
        except Exception as e:
            raise BackendFailure(backend, operation, describe_error(e)) from e


@dataclass
class TierAvailability:
    cache: bool
    primary: bool
    backup: bool


class StorageStrategyHandler(ABC):
    """Base for the strategy variants."""

    kind: StorageStrategy

    def __init__(self, tiers: StorageTiers, durability: DurabilityPolicy = DurabilityPolicy.BEST_EFFORT):
        self.tiers = tiers
        self.durability = durability

    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def clear(self) -> bool: ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    def fallback_mode(self, availability: TierAvailability) -> FallbackMode: ...

    # -------------------------------------------------------------------------
    # Cache tier (the cache service never raises; timeouts still can)
    # -------------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Any | None:
        try:
            return await self.tiers.call("cache", "get", lambda: self.tiers.cache.get(key))
        except BackendFailure as failure:
            self._log_failure(failure, key)
            return None

    async def _cache_set(self, key: str, value: Any, ttl: int) -> bool:
        try:
            return bool(await self.tiers.call("cache", "set", lambda: self.tiers.cache.set(key, value, ttl)))
        except BackendFailure as failure:
            self._log_failure(failure, key)
            return False

    async def _cache_delete(self, key: str) -> bool:
        try:
            return bool(await self.tiers.call("cache", "delete", lambda: self.tiers.cache.delete(key)))
        except BackendFailure as failure:
            self._log_failure(failure, key)
            return False

    async def _cache_clear(self) -> bool:
        try:
            return bool(await self.tiers.call("cache", "clear", self.tiers.cache.clear))
        except BackendFailure as failure:
            self._log_failure(failure, None)
            return False

    async def _cache_exists(self, key: str) -> bool:
        try:
            return bool(await self.tiers.call("cache", "exists", lambda: self.tiers.cache.exists(key)))
        except BackendFailure as failure:
            self._log_failure(failure, key)
            return False

    # -------------------------------------------------------------------------
    # Persistent tiers: primary, then backup only when primary errors
    # -------------------------------------------------------------------------

    async def _persistent(
        self,
        operation: str,
        key: str | None,
        run: Callable[[RecordStore], Awaitable[T]],
    ) -> tuple[bool, T | None]:
        """
        Run ``run(store)`` against primary, falling back to backup on error.

        Returns:
            (reached, result): reached is False when every configured
            persistent store failed
        """
        stores = self.tiers.persistent_stores()
        for index, store in enumerate(stores):
            try:
                result = await self.tiers.call(store.name, operation, lambda s=store: run(s))
            except BackendFailure as failure:
                self._log_failure(failure, key)
                if index + 1 < len(stores):
                    logger.warning(
                        "Falling back to next persistent store",
                        stage=Stage.STORE_FALLBACK,
                        operation=operation,
                        failed=store.name,
                        next=stores[index + 1].name,
                        cache_key=key,
                    )
                continue
            return True, result
        return False, None

    async def _persistent_get(self, key: str) -> Any | None:
        _, record = await self._persistent("get", key, lambda store: store.get(key))
        return record.value if record is not None else None

    async def _persistent_set(self, key: str, value: Any, ttl: int) -> bool:
        reached, _ = await self._persistent("set", key, lambda store: store.upsert(key, value, ttl))
        return reached

    async def _persistent_delete(self, key: str) -> bool:
        reached, deleted = await self._persistent("delete", key, lambda store: store.delete(key))
        return reached and bool(deleted)

    async def _persistent_clear(self) -> bool:
        reached, _ = await self._persistent("clear", None, lambda store: store.truncate())
        return reached

    async def _persistent_exists(self, key: str) -> bool:
        reached, found = await self._persistent("exists", key, lambda store: store.exists(key))
        return reached and bool(found)

    @staticmethod
    def _log_failure(failure: BackendFailure, key: str | None) -> None:
        logger.warning(
            "Storage backend call failed",
            stage=Stage.STORE_FALLBACK,
            backend=failure.backend,
            operation=failure.operation,
            cache_key=key,
            error=failure.error,
        )


class CacheOnlyStrategy(StorageStrategyHandler):
    kind = StorageStrategy.CACHE_ONLY

    async def get(self, key: str) -> Any | None:
        return await self._cache_get(key)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        return await self._cache_set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self._cache_delete(key)

    async def clear(self) -> bool:
        return await self._cache_clear()

    async def exists(self, key: str) -> bool:
        return await self._cache_exists(key)

    def fallback_mode(self, availability: TierAvailability) -> FallbackMode:
        return FallbackMode.NONE if availability.cache else FallbackMode.UNAVAILABLE


class PersistentOnlyStrategy(StorageStrategyHandler):
    kind = StorageStrategy.PERSISTENT_ONLY

    async def get(self, key: str) -> Any | None:
        return await self._persistent_get(key)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        return await self._persistent_set(key, value, ttl)

    async def delete(self, key: str) -> bool:
        return await self._persistent_delete(key)

    async def clear(self) -> bool:
        return await self._persistent_clear()

    async def exists(self, key: str) -> bool:
        return await self._persistent_exists(key)

    def fallback_mode(self, availability: TierAvailability) -> FallbackMode:
        if availability.primary:
            return FallbackMode.NONE
        if availability.backup:
            return FallbackMode.BACKUP
        return FallbackMode.UNAVAILABLE


class HybridStrategy(StorageStrategyHandler):
    """
    Cache in front of the persistent tiers.

    Favours availability: with durability=best_effort a write that only
    reached the cache is still reported as a success, logged as degraded.
    """

    kind = StorageStrategy.HYBRID

    async def get(self, key: str) -> Any | None:
        value = await self._cache_get(key)
        if value is not None:
            return value
        return await self._persistent_get(key)

    async def set(self, key: str, value: Any, ttl: int) -> bool:
        cached = await self._cache_set(key, value, ttl)
        persisted = await self._persistent_set(key, value, ttl)

        if persisted:
            return True
        if not cached:
            logger.error("Write failed on every tier", stage=Stage.STORE_SET, cache_key=key)
            return False

        logger.warning(
            "Write reached the cache only; persistent stores unavailable",
            stage=Stage.STORE_DURABILITY_DEGRADED,
            cache_key=key,
            durability=self.durability.value,
            ttl=ttl,
        )
        return self.durability == DurabilityPolicy.BEST_EFFORT

    async def delete(self, key: str) -> bool:
        cached = await self._cache_delete(key)
        persisted = await self._persistent_delete(key)
        return cached or persisted

    async def clear(self) -> bool:
        cached = await self._cache_clear()
        persisted = await self._persistent_clear()
        return cached or persisted

    async def exists(self, key: str) -> bool:
        if await self._cache_exists(key):
            return True
        return await self._persistent_exists(key)

    def fallback_mode(self, availability: TierAvailability) -> FallbackMode:
        if availability.primary:
            return FallbackMode.NONE if availability.cache else FallbackMode.PRIMARY
        if availability.backup:
            return FallbackMode.BACKUP
        if availability.cache:
            return FallbackMode.CACHE
        return FallbackMode.UNAVAILABLE


def build_strategy(
    kind: StorageStrategy | str,
    tiers: StorageTiers,
    durability: DurabilityPolicy | str = DurabilityPolicy.BEST_EFFORT,
) -> StorageStrategyHandler:
    """Instantiate the variant for ``kind``."""
    kind = StorageStrategy(kind)
    durability = DurabilityPolicy(durability)
    match kind:
        case StorageStrategy.CACHE_ONLY:
            return CacheOnlyStrategy(tiers, durability)
        case StorageStrategy.PERSISTENT_ONLY:
            return PersistentOnlyStrategy(tiers, durability)
        case StorageStrategy.HYBRID:
            return HybridStrategy(tiers, durability)
