from .http_cache import (
    CacheInvalidationMiddleware,
    HttpCacheMiddleware,
    InvalidationRule,
    app_state_cache,
    build_http_cache_key,
)
from .request_id import RequestIdMiddleware

__all__ = [
    "CacheInvalidationMiddleware",
    "HttpCacheMiddleware",
    "InvalidationRule",
    "RequestIdMiddleware",
    "app_state_cache",
    "build_http_cache_key",
]
