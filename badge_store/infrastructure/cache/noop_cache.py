"""
No-op Cache Service

Caching structurally disabled: every read misses, every write "succeeds"
without storing anything.
"""

from typing import Any

from badge_store.infrastructure.cache.base import BaseCacheService, serialize


class NoopCacheService(BaseCacheService):
    name = "noop"

    async def get(self, key: str) -> Any | None:
        self._observer.record_miss(key, reason="noop")
        return None

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        # Same contract as real backends: unserializable values are caller bugs
        serialize(value)
        return True

    async def delete(self, key: str) -> bool:
        return False

    async def exists(self, key: str) -> bool:
        return False

    async def clear(self) -> bool:
        return True

    async def delete_by_pattern(self, pattern: str) -> int:
        return 0

    async def clear_group(self, group: str) -> int:
        return 0

    def _key_count(self) -> int:
        return 0
