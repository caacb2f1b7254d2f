"""
Cache-aside decorator for async functions.

Usage:
    @cacheable(cache, key_builder=lambda user, theme: CacheKeyGenerator.github(user, theme), ttl=600)
    async def render_github_card(user, theme): ...
"""

from collections.abc import Awaitable, Callable
from functools import wraps
from typing import Any

from badge_store.core.interfaces.cache import CacheService


def cacheable(
    cache: CacheService,
    key_builder: Callable[..., str],
    ttl: int | None = None,
):
    """
    Cache the decorated coroutine's result under ``key_builder(*args, **kwargs)``.

    None results are not cached, so a failed computation is retried on the
    next call.
    """

    def decorator(fn: Callable[..., Awaitable[Any]]):
        @wraps(fn)
        async def wrapper(*args, **kwargs):
            key = key_builder(*args, **kwargs)
            cached = await cache.get(key)
            if cached is not None:
                return cached
            result = await fn(*args, **kwargs)
            if result is not None:
                await cache.set(key, result, ttl)
            return result

        return wrapper

    return decorator
