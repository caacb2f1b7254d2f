"""
In-Memory Cache Service

Per-process cache used when Redis is disabled or unavailable by
configuration. Entries are stored serialized, so callers never share
mutable objects with the cache, with an absolute monotonic expiry.

Implementation Details:
- dict[key] -> (payload, expires_at)
- Expired entries are dropped lazily on access and by a periodic sweep
- CACHE_MAX_KEYS bounds the number of live keys; new keys beyond it are
  rejected (set returns False) rather than evicting others

Author: System Architect
Date: 2026-01-12
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

from badge_store.core.config.constants import Stage
from badge_store.core.logging.logger import get_logger
from badge_store.infrastructure.cache.base import (
    BaseCacheService,
    compile_matcher,
    deserialize,
    serialize,
)

logger = get_logger(__name__)


class MemoryCacheService(BaseCacheService):
    """
    TTL cache held in process memory.

    Args:
        default_ttl: TTL used when set() gets None/0
        check_period: Seconds between expiry sweeps (<= 0 disables the task)
        max_keys: Live key limit (<= 0 means unlimited)
        clock: Monotonic clock, injectable for tests
    """

    name = "memory"

    def __init__(
        self,
        default_ttl: int = 300,
        check_period: int = 60,
        max_keys: int = 10000,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__(default_ttl)
        self._check_period = check_period
        self._max_keys = max_keys
        self._clock = clock
        self._store: dict[str, tuple[str, float]] = {}
        self._lock = asyncio.Lock()
        self._sweep_task: asyncio.Task | None = None

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _live_payload(self, key: str) -> str | None:
        entry = self._store.get(key)
        if entry is None:
            return None
        payload, expires_at = entry
        if self._clock() >= expires_at:
            del self._store[key]
            return None
        return payload

    def _purge_expired(self) -> list[str]:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._store.items() if now >= expires_at]
        for key in expired:
            del self._store[key]
        return expired

    # -------------------------------------------------------------------------
    # CacheService API
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            payload = self._live_payload(key)
        if payload is None:
            self._observer.record_miss(key)
            return None
        self._observer.record_hit(key)
        return deserialize(payload)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        payload = serialize(value)
        expires_at = self._clock() + self._ttl(ttl)
        async with self._lock:
            if key not in self._store and self._max_keys > 0 and len(self._store) >= self._max_keys:
                self._purge_expired()
                if len(self._store) >= self._max_keys:
                    logger.warning(
                        "Memory cache full, key rejected",
                        stage=Stage.CACHE_SET,
                        cache_key=key,
                        max_keys=self._max_keys,
                    )
                    return False
            self._store[key] = (payload, expires_at)
        await self._groups.add(key)
        return True

    async def delete(self, key: str) -> bool:
        async with self._lock:
            existed = self._live_payload(key) is not None
            self._store.pop(key, None)
        await self._groups.discard(key)
        return existed

    async def exists(self, key: str) -> bool:
        async with self._lock:
            return self._live_payload(key) is not None

    async def clear(self) -> bool:
        async with self._lock:
            self._store.clear()
        await self._groups.clear()
        logger.info("Memory cache cleared", stage=Stage.CACHE_CLEAR)
        return True

    async def delete_by_pattern(self, pattern: str) -> int:
        matches = compile_matcher(pattern)
        async with self._lock:
            self._purge_expired()
            doomed = [key for key in self._store if matches(key)]
            for key in doomed:
                del self._store[key]
        await self._groups.discard(*doomed)
        logger.info("Cache keys deleted by pattern", stage=Stage.CACHE_DELETE, pattern=pattern, count=len(doomed))
        return len(doomed)

    async def clear_group(self, group: str) -> int:
        members = await self._groups.pop_group(group)
        removed = 0
        async with self._lock:
            for key in members:
                if self._live_payload(key) is not None:
                    removed += 1
                self._store.pop(key, None)
        logger.info("Cache group cleared", stage=Stage.CACHE_DELETE, group=group, count=removed)
        return removed

    def _key_count(self) -> int:
        now = self._clock()
        return sum(1 for _, expires_at in self._store.values() if now < expires_at)

    # -------------------------------------------------------------------------
    # Expiry sweep
    # -------------------------------------------------------------------------

    async def sweep(self) -> int:
        """Drop expired entries now. Returns how many were removed."""
        async with self._lock:
            expired = self._purge_expired()
        if expired:
            await self._groups.discard(*expired)
            logger.debug("Expired cache entries swept", stage=Stage.CACHE_SWEEP, count=len(expired))
        return len(expired)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._check_period)
            await self.sweep()

    async def start(self) -> None:
        if self._check_period > 0 and (self._sweep_task is None or self._sweep_task.done()):
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="memory-cache-sweep")

    async def close(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.gather(self._sweep_task, return_exceptions=True)
            self._sweep_task = None
