"""
Cache service construction from settings.
"""

from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.logging.logger import get_logger
from badge_store.infrastructure.cache.base import BaseCacheService
from badge_store.infrastructure.cache.memory_cache import MemoryCacheService
from badge_store.infrastructure.cache.noop_cache import NoopCacheService
from badge_store.infrastructure.cache.redis_cache import RedisCacheService
from badge_store.infrastructure.connection.redis_manager import RedisConnectionManager

logger = get_logger(__name__)


def create_cache_service(
    settings: Settings | None = None,
    redis_manager: RedisConnectionManager | None = None,
) -> BaseCacheService:
    """
    Build the configured cache service.

    CACHE_BACKEND=redis without a usable Redis configuration (disabled or no
    manager supplied) falls back to the in-memory cache.
    """
    settings = settings or get_settings()
    cache = settings.cache

    if cache.CACHE_BACKEND == "noop":
        return NoopCacheService(default_ttl=cache.CACHE_DEFAULT_TTL)

    if cache.CACHE_BACKEND == "redis":
        if redis_manager is not None and settings.redis.REDIS_ENABLED:
            return RedisCacheService(redis_manager, default_ttl=cache.CACHE_DEFAULT_TTL)
        logger.warning(
            "Redis cache requested but not available, using in-memory cache",
            stage=Stage.INITIALIZATION,
            redis_enabled=settings.redis.REDIS_ENABLED,
        )

    return MemoryCacheService(
        default_ttl=cache.CACHE_DEFAULT_TTL,
        check_period=cache.CACHE_CHECK_PERIOD,
        max_keys=cache.CACHE_MAX_KEYS,
    )
