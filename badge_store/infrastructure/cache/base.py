"""
Cache Service Base

Shared behaviour for every cache implementation:

Architecture:
    BaseCacheService
        ├── CacheObserver   (hit/miss counters + stage logging)
        ├── KeyGroupIndex   (bulk invalidation by namespace)
        └── serialization   (orjson; failures are caller bugs and raise)

Counters and the group index live outside the backend so statistics and
group invalidation behave the same for memory and Redis backends.

Author: System Architect
Date: 2026-01-12
"""

import re
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

import orjson

from badge_store.core.config.constants import Stage
from badge_store.core.exceptions import CacheSerializationError
from badge_store.core.logging.logger import get_logger, log_stage
from badge_store.core.models.records import CacheStats
from badge_store.infrastructure.cache.key_groups import KeyGroupIndex

logger = get_logger(__name__)


class CacheObserver:
    """
    Tracks hit/miss counters and logs cache operations.

    Counters only ever increase; they reset with the process.
    """

    def __init__(self, backend: str, logger_instance=None):
        self._backend = backend
        self._logger = logger_instance or logger
        self.hits = 0
        self.misses = 0

    def record_hit(self, key: str) -> None:
        self.hits += 1
        log_stage(self._logger, Stage.CACHE_GET, "Cache hit", level="debug", backend=self._backend, cache_key=key)

    def record_miss(self, key: str, reason: str = "absent") -> None:
        self.misses += 1
        log_stage(
            self._logger,
            Stage.CACHE_GET,
            "Cache miss",
            level="debug",
            backend=self._backend,
            cache_key=key,
            reason=reason,
        )

    def record_failure(self, operation: str, key: str | None, error: str) -> None:
        log_stage(
            self._logger,
            Stage.CACHE_GET if operation == "get" else Stage.CACHE_SET,
            "Cache backend operation failed",
            level="warning",
            backend=self._backend,
            operation=operation,
            cache_key=key,
            error=error,
        )


def serialize(value: Any) -> str:
    """
    Serialize a value with orjson.

    Raises:
        CacheSerializationError: If the value is not JSON-serializable
    """
    try:
        return orjson.dumps(value).decode("utf-8")
    except (TypeError, orjson.JSONEncodeError) as e:
        raise CacheSerializationError(
            f"Value of type {type(value).__name__} is not JSON-serializable",
            details={"original_error": str(e)},
        ) from e


def deserialize(payload: str | bytes) -> Any:
    return orjson.loads(payload)


def compile_matcher(pattern: str) -> Callable[[str], bool]:
    """
    Build a key predicate from a regular expression.

    Patterns that are not valid regular expressions match as plain
    substrings.
    """
    try:
        regex = re.compile(pattern)
    except re.error:
        return lambda key: pattern in key
    return lambda key: regex.search(key) is not None


class BaseCacheService(ABC):
    """
    Template for cache services.

    Subclasses must never let backend errors escape get/set/delete/clear;
    they return a miss, False or 0 instead.
    """

    name = "base"

    def __init__(self, default_ttl: int = 300):
        self._default_ttl = default_ttl
        self._observer = CacheObserver(self.name)
        self._groups = KeyGroupIndex()

    @property
    def default_ttl(self) -> int:
        return self._default_ttl

    def _ttl(self, ttl: int | None) -> int:
        return ttl if ttl and ttl > 0 else self._default_ttl

    @abstractmethod
    async def get(self, key: str) -> Any | None: ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool: ...

    @abstractmethod
    async def delete(self, key: str) -> bool: ...

    @abstractmethod
    async def exists(self, key: str) -> bool: ...

    @abstractmethod
    async def clear(self) -> bool: ...

    @abstractmethod
    async def delete_by_pattern(self, pattern: str) -> int: ...

    @abstractmethod
    async def clear_group(self, group: str) -> int: ...

    @abstractmethod
    def _key_count(self) -> int: ...

    def is_available(self) -> bool:
        return True

    def get_stats(self) -> CacheStats:
        return CacheStats(
            hits=self._observer.hits,
            misses=self._observer.misses,
            key_count=self._key_count(),
            group_count=self._groups.group_count,
        )

    def groups(self) -> list[str]:
        return self._groups.groups()

    async def start(self) -> None:
        """Start background work (if any)."""

    async def close(self) -> None:
        """Release background work (if any)."""
