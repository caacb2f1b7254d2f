from .base import BaseCacheService, CacheObserver
from .decorators import cacheable
from .factory import create_cache_service
from .key_groups import KeyGroupIndex
from .memory_cache import MemoryCacheService
from .noop_cache import NoopCacheService
from .redis_cache import RedisCacheService

__all__ = [
    "BaseCacheService",
    "CacheObserver",
    "KeyGroupIndex",
    "MemoryCacheService",
    "NoopCacheService",
    "RedisCacheService",
    "cacheable",
    "create_cache_service",
]
