"""
HTTP Cache Middleware

Whole-response caching for GET endpoints, keyed by method + path + query.
Independent of the domain accessors; it only talks to the cache service.

Request Flow:
    GET /api/github?username=octocat
        ├── nocache=true?        → pass through
        ├── cache hit            → replay body + whitelisted headers
        │                          (X-Cache-Status: HIT, X-Cache-Key)
        └── miss                 → call the route, mark MISS, store the
                                   response if 2xx and under the size limit

Stored entry:
    {"status": 200, "body": "...", "encoding": "utf-8" | "base64", "headers": {...}}

CacheInvalidationMiddleware clears a pattern or group after successful
mutating requests and reports the counts in response headers.

Author: System Architect
Date: 2026-01-12
"""

import base64
import hashlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlencode

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from badge_store.core.config.constants import (
    CACHEABLE_RESPONSE_HEADERS,
    HEADER_CACHE_CLEAR_COUNT,
    HEADER_CACHE_GROUP_CLEAR_COUNT,
    HEADER_CACHE_KEY,
    HEADER_CACHE_STATUS,
    NAMESPACE_HTTP,
    Stage,
)
from badge_store.core.config.settings import HttpCacheSettings, get_settings
from badge_store.core.interfaces.cache import CacheService
from badge_store.core.logging.logger import get_logger
from badge_store.core.models.key_scheme import CacheKeyGenerator

logger = get_logger(__name__)

CacheProvider = Callable[[Request], CacheService | None]

UNCACHED_PATH_PREFIXES = ("/cache", "/health", "/docs", "/redoc", "/openapi.json")


def build_http_cache_key(request: Request) -> str:
    """
    ``http:{method}:{path}:{sorted query}:{query digest}``.

    The readable query part is sanitized, so the digest of the encoded
    query keeps distinct queries apart.
    """
    items = sorted(request.query_params.multi_items())
    if not items:
        return CacheKeyGenerator.generate(NAMESPACE_HTTP, request.method, request.url.path)
    query = "&".join(f"{k}={v}" for k, v in items)
    digest = hashlib.md5(urlencode(items).encode()).hexdigest()[:16]
    return CacheKeyGenerator.generate(NAMESPACE_HTTP, request.method, request.url.path, query, digest)


def app_state_cache(request: Request) -> CacheService | None:
    """Cache service of the container the lifespan put on app.state."""
    container = getattr(request.app.state, "container", None)
    return getattr(container, "cache", None)


def _encode_body(body: bytes) -> tuple[str, str]:
    try:
        return body.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        return base64.b64encode(body).decode("ascii"), "base64"


def _decode_body(entry: dict[str, Any]) -> bytes:
    if entry.get("encoding") == "base64":
        return base64.b64decode(entry["body"])
    return entry["body"].encode("utf-8")


class HttpCacheMiddleware(BaseHTTPMiddleware):
    """
    Cache whole GET responses.

    Args:
        app: ASGI application
        cache_provider: Returns the cache service for a request (defaults to
            the application container's cache, available once the lifespan
            has started)
        settings: HTTP cache settings (defaults to get_settings().http_cache)
        excluded_prefixes: Paths never cached (admin, health and docs)
    """

    def __init__(
        self,
        app,
        cache_provider: CacheProvider = app_state_cache,
        settings: HttpCacheSettings | None = None,
        excluded_prefixes: Sequence[str] = UNCACHED_PATH_PREFIXES,
    ):
        super().__init__(app)
        self._cache_provider = cache_provider
        self._settings = settings or get_settings().http_cache
        self._excluded_prefixes = tuple(excluded_prefixes)

    def ttl_for(self, path: str) -> int:
        """TTL of the first path segment naming a platform, else the default."""
        ttls = self._settings.HTTP_CACHE_PLATFORM_TTLS
        for segment in path.lower().split("/"):
            if segment in ttls:
                return ttls[segment]
        return self._settings.HTTP_CACHE_DEFAULT_TTL

    def _skip(self, request: Request) -> bool:
        return (
            not self._settings.HTTP_CACHE_ENABLED
            or request.method != "GET"
            or request.url.path.startswith(self._excluded_prefixes)
            or request.query_params.get("nocache", "").lower() == "true"
        )

    async def dispatch(self, request: Request, call_next) -> Response:
        if self._skip(request):
            return await call_next(request)

        cache = self._cache_provider(request)
        if cache is None:
            return await call_next(request)

        key = build_http_cache_key(request)
        entry = await cache.get(key)
        if isinstance(entry, dict) and "body" in entry:
            logger.debug("HTTP cache hit", stage=Stage.HTTP_CACHE, cache_key=key)
            headers = dict(entry.get("headers") or {})
            headers[HEADER_CACHE_STATUS] = "HIT"
            headers[HEADER_CACHE_KEY] = key
            return Response(
                content=_decode_body(entry),
                status_code=entry.get("status", 200),
                headers=headers,
            )

        response = await call_next(request)
        body = b"".join([chunk async for chunk in response.body_iterator])

        replay = Response(
            content=body,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
        replay.headers[HEADER_CACHE_STATUS] = "MISS"
        replay.headers[HEADER_CACHE_KEY] = key

        if 200 <= response.status_code < 300:
            await self._store(cache, key, response, body, request.url.path)
        return replay

    async def _store(self, cache: CacheService, key: str, response: Response, body: bytes, path: str) -> None:
        if len(body) >= self._settings.HTTP_CACHE_MAX_BODY_BYTES:
            logger.debug(
                "Response too large to cache",
                stage=Stage.HTTP_CACHE,
                cache_key=key,
                body_kb=round(len(body) / 1024, 2),
            )
            return

        text, encoding = _encode_body(body)
        headers = {
            name: value
            for name, value in response.headers.items()
            if name.lower() in CACHEABLE_RESPONSE_HEADERS
        }
        stored = await cache.set(
            key,
            {"status": response.status_code, "body": text, "encoding": encoding, "headers": headers},
            self.ttl_for(path),
        )
        if not stored:
            logger.warning("Failed to cache response", stage=Stage.HTTP_CACHE, cache_key=key)


@dataclass(frozen=True)
class InvalidationRule:
    """
    Clear cache entries after a successful mutating request.

    Attributes:
        path_prefix: Requests whose path starts with this trigger the rule
        pattern: delete_by_pattern() argument
        group: clear_group() argument
        methods: Methods that trigger the rule
    """

    path_prefix: str
    pattern: str | None = None
    group: str | None = None
    methods: frozenset[str] = frozenset({"POST", "PUT", "PATCH", "DELETE"})

    def matches(self, request: Request) -> bool:
        return request.method in self.methods and request.url.path.startswith(self.path_prefix)


class CacheInvalidationMiddleware(BaseHTTPMiddleware):
    """Apply InvalidationRules after 2xx responses."""

    def __init__(
        self,
        app,
        rules: Sequence[InvalidationRule] = (),
        cache_provider: CacheProvider = app_state_cache,
    ):
        super().__init__(app)
        self._rules = tuple(rules)
        self._cache_provider = cache_provider

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        if not 200 <= response.status_code < 300:
            return response

        rules = [rule for rule in self._rules if rule.matches(request)]
        if not rules:
            return response
        cache = self._cache_provider(request)
        if cache is None:
            return response

        pattern_count = 0
        group_count = 0
        for rule in rules:
            if rule.pattern is not None:
                pattern_count += await cache.delete_by_pattern(rule.pattern)
            if rule.group is not None:
                group_count += await cache.clear_group(rule.group)

        if any(rule.pattern is not None for rule in rules):
            response.headers[HEADER_CACHE_CLEAR_COUNT] = str(pattern_count)
        if any(rule.group is not None for rule in rules):
            response.headers[HEADER_CACHE_GROUP_CLEAR_COUNT] = str(group_count)

        logger.info(
            "Cache invalidated after write",
            stage=Stage.HTTP_CACHE,
            path=request.url.path,
            pattern_count=pattern_count,
            group_count=group_count,
        )
        return response
