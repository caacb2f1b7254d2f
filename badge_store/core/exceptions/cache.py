"""
Cache-Related Exceptions

All exceptions related to caching operations (Redis, in-memory cache).

Author: System Architect
Date: 2026-01-12
"""

from badge_store.core.exceptions.base import BadgeStoreError


class CacheError(BadgeStoreError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to the cache (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """
    Raised when a cache key operation fails on the server side.
    """
    pass


class CacheSerializationError(CacheError):
    """
    Raised when a value cannot be serialized for caching.

    This is a caller bug and is never retried.
    """
    pass
