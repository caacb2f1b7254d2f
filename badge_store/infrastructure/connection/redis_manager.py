"""
Redis Connection Manager

Owns the redis.asyncio ConnectionPool used by the networked cache tier.

Pool Configuration:
- Max connections: REDIS_MAX_CONNECTIONS
- Connect timeout distinct from per-operation socket timeout
- Pool-level health check interval
- Decode responses: True (values are JSON strings)

Author: System Architect
Date: 2026-01-12
"""

from contextlib import asynccontextmanager
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool

from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.exceptions import CacheConnectionError
from badge_store.infrastructure.connection.base import ConnectionManager


class RedisConnectionManager(ConnectionManager):
    """
    Connection manager for Redis.

    Operations receive the shared ``redis.Redis`` client; the pool hands
    out and returns the underlying socket per command.
    """

    unavailable_error = CacheConnectionError

    def __init__(self, settings: Settings | None = None, **kwargs: Any):
        self._settings = settings or get_settings()
        redis_settings = self._settings.redis
        password = f":{redis_settings.REDIS_PASSWORD}@" if redis_settings.REDIS_PASSWORD else ""
        endpoint = (
            f"redis://{password}{redis_settings.REDIS_HOST}:{redis_settings.REDIS_PORT}"
            f"/{redis_settings.REDIS_DB}"
        )
        kwargs.setdefault("connect_timeout", redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT)
        kwargs.setdefault("operation_timeout", redis_settings.REDIS_SOCKET_TIMEOUT)
        super().__init__("redis", endpoint, settings=self._settings, **kwargs)

        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None

    async def _open(self) -> None:
        redis_settings = self._settings.redis
        self._pool = ConnectionPool(
            host=redis_settings.REDIS_HOST,
            port=redis_settings.REDIS_PORT,
            db=redis_settings.REDIS_DB,
            password=redis_settings.REDIS_PASSWORD,
            max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
            socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
            retry_on_timeout=True,
            health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
            decode_responses=True,
        )
        self._client = redis.Redis(connection_pool=self._pool)
        await self._client.ping()

    async def _probe(self) -> None:
        if self._client is None:
            raise CacheConnectionError("Redis client not initialized")
        await self._client.ping()

    async def _close(self) -> None:
        client, pool = self._client, self._pool
        self._client = None
        self._pool = None
        if client is not None:
            await client.aclose()
        if pool is not None:
            await pool.disconnect()

    @asynccontextmanager
    async def _acquire(self):
        if self._client is None:
            raise CacheConnectionError("Redis client not initialized")
        yield self._client

    def get_connection_status(self) -> dict[str, Any]:
        status = super().get_connection_status()
        if self._pool is not None:
            status["pool_max_connections"] = self._pool.max_connections
        return status
