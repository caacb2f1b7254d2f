"""
Cache Service Protocol

This module defines the protocol every cache service implements, so the
storage service, HTTP middleware and accessors can work against memory,
Redis or no-op caches without branching.

Architectural Decision: Protocol-based abstraction
- Multiple cache implementations (Redis, in-memory, no-op)
- Easy testing with fakes
- Type-safe interface with runtime checking

Contract:
- Reads never raise: backend errors count as misses
- Writes and deletes return booleans / counts instead of raising
- Only serialization errors (caller bugs) propagate

Author: System Architect
Date: 2026-01-12
"""

from typing import Any, Protocol, runtime_checkable

from badge_store.core.models.records import CacheStats


@runtime_checkable
class CacheService(Protocol):
    """
    Protocol defining the cache service interface.

    Implementations:
    - RedisCacheService: Production Redis-backed cache
    - MemoryCacheService: In-process cache (degraded / single node)
    - NoopCacheService: Always miss, always succeed silently
    """

    name: str

    async def get(self, key: str) -> Any | None:
        """
        Get a value.

        Returns:
            The deserialized value, or None on miss or backend error
        """
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """
        Store a value with a TTL (None/0 means the backend default).

        Returns:
            bool: False if the write could not be confirmed

        Raises:
            CacheSerializationError: If value is not JSON-serializable
        """
        ...

    async def delete(self, key: str) -> bool:
        """Delete a key. False when nothing was deleted."""
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def clear(self) -> bool:
        """Drop every key in the backend."""
        ...

    async def delete_by_pattern(self, pattern: str) -> int:
        """
        Delete keys matching a substring or regular expression.

        Returns:
            int: Number of keys removed
        """
        ...

    async def clear_group(self, group: str) -> int:
        """
        Delete every key indexed under ``group``.

        Returns:
            int: Number of keys removed
        """
        ...

    def get_stats(self) -> CacheStats:
        ...

    def is_available(self) -> bool:
        """Whether the backend is currently believed reachable."""
        ...

    async def close(self) -> None:
        ...
