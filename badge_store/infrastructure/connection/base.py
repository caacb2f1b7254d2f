"""
Connection Manager Base - one long-lived client/pool per backend

Architecture:
    ConnectionManager (abstract)
        ├── connect()            idempotent, never raises, schedules reconnects
        ├── ensure_connection()  probe when CONNECTED, else connect inline
        ├── execute_operation()  scoped acquire → run → release
        ├── disconnect()         idempotent, stops timers, closes the pool
        ├── reconnect loop       delay = min(base * 2^attempt, cap), bounded attempts
        └── heartbeat loop       periodic probe, feeds the reconnect loop

State machine (owned exclusively by the manager):

    DISCONNECTED ──► CONNECTING ──► CONNECTED
                          │              │
                          ▼              ▼
                        ERROR ◄──── probe failure
                          │
                          ├──► CONNECTING (reconnect attempt)
                          └──► DISCONNECTED (attempts exhausted / disconnect())

After the reconnect budget is spent the manager stays DISCONNECTED; only
the next ensure_connection() call starts a fresh round of attempts.

Subclasses implement four hooks: _open, _probe, _close and _acquire.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from contextlib import AbstractAsyncContextManager, suppress
from enum import Enum
from typing import Any, TypeVar

from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import Settings, get_settings
from badge_store.core.exceptions import BadgeStoreError, StorageConnectionError
from badge_store.core.logging.logger import get_logger, mask_url_password
from badge_store.core.resilience.backoff import compute_backoff_delay
from badge_store.core.resilience.failures import describe_error, is_retryable

logger = get_logger(__name__)

T = TypeVar("T")


class ConnectionState(str, Enum):
    """Connection lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ERROR = "error"


class ConnectionManager(ABC):
    """
    Owns the client/pool for one backend and keeps it alive.

    Args:
        name: Backend name used in logs and status payloads
        endpoint: Connection URL/host (password is masked in status output)
        base_delay / max_delay / max_attempts: reconnect backoff policy
        heartbeat_interval: seconds between liveness probes (<= 0 disables)
        connect_timeout: bound on establishing a connection
        operation_timeout: bound on each probe / operation
        sleep: coroutine used to wait between reconnect attempts
        settings: source of the reconnect defaults (defaults to get_settings())
    """

    unavailable_error: type[BadgeStoreError] = StorageConnectionError

    def __init__(
        self,
        name: str,
        endpoint: str,
        *,
        base_delay: float | None = None,
        max_delay: float | None = None,
        max_attempts: int | None = None,
        heartbeat_interval: float | None = None,
        connect_timeout: float = 5.0,
        operation_timeout: float = 10.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        settings: Settings | None = None,
    ):
        resilience = (settings or get_settings()).resilience
        self.name = name
        self._endpoint = endpoint
        self._base_delay = base_delay if base_delay is not None else resilience.RECONNECT_BASE_DELAY
        self._max_delay = max_delay if max_delay is not None else resilience.RECONNECT_MAX_DELAY
        self._max_attempts = max_attempts if max_attempts is not None else resilience.RECONNECT_MAX_ATTEMPTS
        self._heartbeat_interval = (
            heartbeat_interval if heartbeat_interval is not None else resilience.HEARTBEAT_INTERVAL
        )
        self._connect_timeout = connect_timeout
        self._operation_timeout = operation_timeout
        self._sleep = sleep

        self._state = ConnectionState.DISCONNECTED
        self._lock = asyncio.Lock()
        self._reconnect_attempts = 0
        self._reconnect_task: asyncio.Task | None = None
        self._heartbeat_task: asyncio.Task | None = None
        self._last_error: str | None = None
        self._connected_since: float | None = None
        self._stopped = False

    # =========================================================================
    # Backend hooks
    # =========================================================================

    @abstractmethod
    async def _open(self) -> None:
        """Create the client/pool and verify it. Raise on failure."""

    @abstractmethod
    async def _probe(self) -> None:
        """Lightweight liveness check (ping-equivalent). Raise on failure."""

    @abstractmethod
    async def _close(self) -> None:
        """Release the client/pool."""

    @abstractmethod
    def _acquire(self) -> AbstractAsyncContextManager[Any]:
        """Scoped acquisition of whatever operations run against."""

    # =========================================================================
    # State (read-only outside this class)
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def is_connected(self) -> bool:
        return self._state == ConnectionState.CONNECTED

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def reconnecting(self) -> bool:
        return self._reconnect_task is not None and not self._reconnect_task.done()

    # =========================================================================
    # Public lifecycle
    # =========================================================================

    async def connect(self) -> bool:
        """
        Connect if not already connected.

        Never raises. On failure the state becomes ERROR and the reconnect
        policy is scheduled.

        Returns:
            bool: True when CONNECTED afterwards
        """
        self._stopped = False
        if await self._attempt_connect():
            return True
        self._schedule_reconnect()
        return False

    async def ensure_connection(self) -> bool:
        """
        Return True if a live connection is available.

        Probes when the local state says CONNECTED, so a silently dead
        connection is detected here; otherwise connects inline.
        """
        if self._state == ConnectionState.CONNECTED:
            try:
                await asyncio.wait_for(self._probe(), timeout=self._operation_timeout)
                return True
            except Exception as exc:
                await self._connection_lost(exc, source="probe")

        if not self.reconnecting and self._reconnect_attempts >= self._max_attempts:
            # Budget was spent earlier; this call starts a fresh round.
            self._reconnect_attempts = 0
        return await self.connect()

    async def execute_operation(
        self,
        operation: Callable[[Any], Awaitable[T]],
        *,
        timeout: float | None = None,
    ) -> T:
        """
        Run ``operation(resource)`` against a live connection.

        The resource is acquired in a scoped block so it is released on
        every exit path, including exceptions and timeouts.

        Raises:
            unavailable_error: Backend unreachable or a retryable failure
                occurred during the operation
            Exception: Non-retryable errors propagate unchanged
        """
        if not await self.ensure_connection():
            raise self.unavailable_error(
                f"{self.name} is unavailable",
                details={"backend": self.name, "state": self._state.value, "last_error": self._last_error},
            )

        try:
            async with self._acquire() as resource:
                return await asyncio.wait_for(
                    operation(resource), timeout=timeout or self._operation_timeout
                )
        except Exception as exc:
            if not is_retryable(exc):
                raise
            logger.warning(
                "Backend operation failed",
                stage=Stage.CONN_OPERATION,
                backend=self.name,
                error=describe_error(exc),
            )
            await self._verify_after_failure(exc)
            raise self.unavailable_error.from_exception(exc, backend=self.name) from exc

    async def disconnect(self) -> None:
        """
        Graceful shutdown: stop timers and close the pool.

        Idempotent; safe to call repeatedly.
        """
        self._stopped = True
        await self._cancel_task(self._reconnect_task)
        self._reconnect_task = None
        await self._cancel_task(self._heartbeat_task)
        self._heartbeat_task = None

        async with self._lock:
            was_connected = self._state != ConnectionState.DISCONNECTED
            await self._safe_close()
            self._state = ConnectionState.DISCONNECTED
            self._connected_since = None

        if was_connected:
            logger.info("Backend disconnected", stage=Stage.CONN_DISCONNECTED, backend=self.name)

    # =========================================================================
    # Internals
    # =========================================================================

    async def _attempt_connect(self) -> bool:
        async with self._lock:
            if self._state == ConnectionState.CONNECTED:
                return True

            self._state = ConnectionState.CONNECTING
            logger.info(
                "Connecting to backend",
                stage=Stage.CONN_CONNECTING,
                backend=self.name,
                endpoint=self.masked_endpoint,
            )
            try:
                await asyncio.wait_for(self._open(), timeout=self._connect_timeout)
            except Exception as exc:
                self._state = ConnectionState.ERROR
                self._last_error = describe_error(exc)
                logger.error(
                    "Backend connection failed",
                    stage=Stage.CONN_FAILED,
                    backend=self.name,
                    endpoint=self.masked_endpoint,
                    error=self._last_error,
                )
                await self._safe_close()
                return False

            self._state = ConnectionState.CONNECTED
            self._reconnect_attempts = 0
            self._last_error = None
            self._connected_since = time.time()

        self._start_heartbeat()
        logger.info(
            "Backend connected successfully",
            stage=Stage.CONN_CONNECTED,
            backend=self.name,
            endpoint=self.masked_endpoint,
        )
        return True

    def _schedule_reconnect(self) -> None:
        if self._stopped or self.reconnecting or self._state == ConnectionState.CONNECTED:
            return
        if self._reconnect_attempts >= self._max_attempts:
            self._state = ConnectionState.DISCONNECTED
            return
        self._reconnect_task = asyncio.create_task(
            self._reconnect_loop(), name=f"{self.name}-reconnect"
        )

    async def _reconnect_loop(self) -> None:
        while not self._stopped and self._reconnect_attempts < self._max_attempts:
            if self._state == ConnectionState.CONNECTED:
                return
            delay = compute_backoff_delay(self._reconnect_attempts, self._base_delay, self._max_delay)
            self._reconnect_attempts += 1
            logger.info(
                "Reconnect scheduled",
                stage=Stage.CONN_RECONNECT,
                backend=self.name,
                attempt=self._reconnect_attempts,
                max_attempts=self._max_attempts,
                delay=delay,
            )
            await self._sleep(delay)
            if self._stopped:
                return
            if await self._attempt_connect():
                return

        if self._state != ConnectionState.CONNECTED:
            self._state = ConnectionState.DISCONNECTED
            logger.error(
                "Reconnect attempts exhausted, staying disconnected",
                stage=Stage.CONN_RECONNECT,
                backend=self.name,
                attempts=self._reconnect_attempts,
                last_error=self._last_error,
            )

    def _start_heartbeat(self) -> None:
        if self._heartbeat_interval <= 0 or self._stopped:
            return
        if self._heartbeat_task is not None and not self._heartbeat_task.done():
            return
        self._heartbeat_task = asyncio.create_task(
            self._heartbeat_loop(), name=f"{self.name}-heartbeat"
        )

    async def _heartbeat_loop(self) -> None:
        while not self._stopped:
            await asyncio.sleep(self._heartbeat_interval)
            if self._state != ConnectionState.CONNECTED:
                continue
            try:
                await asyncio.wait_for(self._probe(), timeout=self._operation_timeout)
                logger.debug("Heartbeat ok", stage=Stage.CONN_HEARTBEAT, backend=self.name)
            except Exception as exc:
                await self._connection_lost(exc, source="heartbeat")
                self._schedule_reconnect()

    async def _verify_after_failure(self, exc: BaseException) -> None:
        """A retryable operation failure: probe before tearing the pool down."""
        try:
            await asyncio.wait_for(self._probe(), timeout=self._operation_timeout)
        except Exception:
            await self._connection_lost(exc, source="operation")
            self._schedule_reconnect()

    async def _connection_lost(self, exc: BaseException, source: str) -> None:
        async with self._lock:
            if self._state != ConnectionState.CONNECTED:
                return
            self._state = ConnectionState.ERROR
            self._last_error = describe_error(exc)
            self._connected_since = None
            await self._safe_close()
        logger.warning(
            "Backend connection lost",
            stage=Stage.CONN_HEARTBEAT,
            backend=self.name,
            source=source,
            error=self._last_error,
        )

    async def _safe_close(self) -> None:
        try:
            await self._close()
        except Exception as exc:
            logger.debug("Error while closing backend", backend=self.name, error=describe_error(exc))

    @staticmethod
    async def _cancel_task(task: asyncio.Task | None) -> None:
        if task is None or task.done():
            return
        if task is asyncio.current_task():
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    # =========================================================================
    # Observability
    # =========================================================================

    @property
    def masked_endpoint(self) -> str:
        return mask_url_password(self._endpoint)

    def get_connection_status(self) -> dict[str, Any]:
        """Side-effect-free status snapshot."""
        return {
            "name": self.name,
            "state": self._state.value,
            "connected": self.is_connected,
            "endpoint": self.masked_endpoint,
            "reconnect_attempts": self._reconnect_attempts,
            "max_reconnect_attempts": self._max_attempts,
            "reconnecting": self.reconnecting,
            "last_error": self._last_error,
            "connected_since": self._connected_since,
        }

    async def health_check(self) -> dict[str, Any]:
        """
        Probe the backend and report latency.

        Never raises and never triggers a reconnect.
        """
        health = {
            "status": "disconnected",
            "backend": self.name,
            "state": self._state.value,
            "latency_ms": None,
        }
        if self._state != ConnectionState.CONNECTED:
            health["error"] = self._last_error
            return health

        start = time.perf_counter()
        try:
            await asyncio.wait_for(self._probe(), timeout=self._operation_timeout)
            health["status"] = "healthy"
            health["latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except Exception as exc:
            health["status"] = "unhealthy"
            health["error"] = describe_error(exc)
        return health
