"""
Redis Cache Service

Networked cache tier. Every call goes through the Redis connection
manager's execute_operation(), which first runs ensure_connection(); any
connectivity failure degrades to a miss / False / 0 here so callers never
handle Redis exceptions.

Architecture:
    RedisCacheService
        ├── RedisConnectionManager  (pool, reconnect, heartbeat)
        ├── CacheObserver           (hit/miss counters)
        └── KeyGroupIndex           (namespace index for clear_group)

Expiry uses Redis' native TTL (SET ... EX).

Author: System Architect
Date: 2026-01-12
"""

import re
from typing import Any

import orjson

from badge_store.core.config.constants import KEY_DELIMITER, Stage
from badge_store.core.logging.logger import get_logger
from badge_store.core.resilience.failures import describe_error
from badge_store.infrastructure.cache.base import (
    BaseCacheService,
    compile_matcher,
    deserialize,
    serialize,
)
from badge_store.infrastructure.connection.redis_manager import RedisConnectionManager

logger = get_logger(__name__)

_SCAN_BATCH = 500
_REGEX_META = re.compile(r"[\\^$.|?*+()\[\]{}]")
_GLOB_META = re.compile(r"([*?\[\]\\])")


def _glob_escape(text: str) -> str:
    return _GLOB_META.sub(r"\\\1", text)


class RedisCacheService(BaseCacheService):
    """
    Cache service backed by Redis.

    Args:
        manager: Connection manager owning the pool
        default_ttl: TTL used when set() gets None/0
    """

    name = "redis"

    def __init__(self, manager: RedisConnectionManager, default_ttl: int = 300):
        super().__init__(default_ttl)
        self._manager = manager

    @property
    def manager(self) -> RedisConnectionManager:
        return self._manager

    def is_available(self) -> bool:
        return self._manager.is_connected

    # -------------------------------------------------------------------------
    # CacheService API
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> Any | None:
        try:
            payload = await self._manager.execute_operation(lambda client: client.get(key))
        except Exception as e:
            self._observer.record_failure("get", key, describe_error(e))
            self._observer.record_miss(key, reason="backend_error")
            return None

        if payload is None:
            self._observer.record_miss(key)
            return None

        try:
            value = deserialize(payload)
        except orjson.JSONDecodeError as e:
            self._observer.record_failure("get", key, describe_error(e))
            self._observer.record_miss(key, reason="corrupt_payload")
            return None

        self._observer.record_hit(key)
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        payload = serialize(value)
        expire = self._ttl(ttl)
        try:
            await self._manager.execute_operation(lambda client: client.set(key, payload, ex=expire))
        except Exception as e:
            self._observer.record_failure("set", key, describe_error(e))
            return False
        await self._groups.add(key)
        return True

    async def delete(self, key: str) -> bool:
        await self._groups.discard(key)
        try:
            removed = await self._manager.execute_operation(lambda client: client.delete(key))
        except Exception as e:
            self._observer.record_failure("delete", key, describe_error(e))
            return False
        return bool(removed)

    async def exists(self, key: str) -> bool:
        try:
            return bool(await self._manager.execute_operation(lambda client: client.exists(key)))
        except Exception as e:
            self._observer.record_failure("exists", key, describe_error(e))
            return False

    async def clear(self) -> bool:
        try:
            await self._manager.execute_operation(lambda client: client.flushdb())
        except Exception as e:
            self._observer.record_failure("clear", None, describe_error(e))
            return False
        await self._groups.clear()
        logger.info("Redis cache cleared", stage=Stage.CACHE_CLEAR)
        return True

    async def delete_by_pattern(self, pattern: str) -> int:
        # Literal patterns narrow the SCAN server-side; regexes filter locally.
        if _REGEX_META.search(pattern):
            match = "*"
        else:
            match = f"*{_glob_escape(pattern)}*"
        matches = compile_matcher(pattern)

        try:
            removed = await self._manager.execute_operation(
                lambda client: self._scan_and_delete(client, match, matches)
            )
        except Exception as e:
            self._observer.record_failure("delete_by_pattern", pattern, describe_error(e))
            return 0
        logger.info("Cache keys deleted by pattern", stage=Stage.CACHE_DELETE, pattern=pattern, count=removed)
        return removed

    async def clear_group(self, group: str) -> int:
        """
        Delete a group.

        Besides the indexed members, keys under ``group:`` written by other
        processes are found with SCAN, since the index is per process.
        """
        members = await self._groups.pop_group(group)
        prefix = f"{_glob_escape(group)}{KEY_DELIMITER}*"

        async def _clear(client) -> int:
            keys = set(members)
            async for key in client.scan_iter(match=prefix, count=_SCAN_BATCH):
                keys.add(key)
            if not keys:
                return 0
            return await self._delete_keys(client, list(keys))

        try:
            removed = await self._manager.execute_operation(_clear)
        except Exception as e:
            self._observer.record_failure("clear_group", group, describe_error(e))
            return 0
        logger.info("Cache group cleared", stage=Stage.CACHE_DELETE, group=group, count=removed)
        return removed

    def _key_count(self) -> int:
        # Keys tracked by this process; Redis itself may hold more.
        return self._groups.key_count

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _scan_and_delete(self, client, match: str, matches) -> int:
        doomed = [key async for key in client.scan_iter(match=match, count=_SCAN_BATCH) if matches(key)]
        if not doomed:
            return 0
        removed = await self._delete_keys(client, doomed)
        await self._groups.discard(*doomed)
        return removed

    @staticmethod
    async def _delete_keys(client, keys: list[str]) -> int:
        removed = 0
        for start in range(0, len(keys), _SCAN_BATCH):
            removed += await client.delete(*keys[start:start + _SCAN_BATCH])
        return removed

    async def health_check(self) -> dict[str, Any]:
        return await self._manager.health_check()
