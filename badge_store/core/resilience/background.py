"""
Background Persistence Queue

Persistence steps that must not block a response (e.g. writing a freshly
fetched profile back through the storage service) are submitted here
instead of being launched as unawaited coroutines.

Architecture:
    submit() ──► bounded asyncio.Queue ──► N worker tasks ──► retry_with_fallback(job)
                     │                           │
                     └─ full: job dropped,       └─ final failure: logged,
                        counted                     counted, never raised

Guarantees:
- At most ``concurrency`` jobs run at once
- Every submitted job ends up in exactly one of succeeded / failed / dropped
- drain() waits until everything accepted so far has finished

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import get_settings
from badge_store.core.logging.logger import get_logger
from badge_store.core.resilience.failures import describe_error
from badge_store.core.resilience.retry import retry_with_fallback

logger = get_logger(__name__)


@dataclass
class _Job:
    fn: Callable[..., Awaitable[Any]]
    args: tuple
    kwargs: dict
    description: str


@dataclass
class BackgroundQueueMetrics:
    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    dropped: int = 0
    in_flight: int = 0
    last_error: str | None = None
    recent_failures: list[str] = field(default_factory=list)

    def to_dict(self, queued: int) -> dict[str, Any]:
        return {
            "submitted": self.submitted,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "dropped": self.dropped,
            "in_flight": self.in_flight,
            "queued": queued,
            "last_error": self.last_error,
        }


class BackgroundPersistenceQueue:
    """
    Bounded worker pool for fire-and-forget persistence.

    Usage:
        queue = BackgroundPersistenceQueue(concurrency=4)
        await queue.start()
        queue.submit(storage.set, key, value, ttl, description="persist github")
        ...
        await queue.stop()
    """

    _MAX_RECENT_FAILURES = 20

    def __init__(
        self,
        concurrency: int | None = None,
        max_queue_size: int | None = None,
        max_attempts: int | None = None,
        base_delay: float | None = None,
        max_delay: float | None = None,
    ):
        resilience = get_settings().resilience
        self._concurrency = concurrency or resilience.BACKGROUND_WRITER_CONCURRENCY
        self._max_queue_size = max_queue_size or resilience.BACKGROUND_WRITER_QUEUE_SIZE
        self._max_attempts = max_attempts
        self._base_delay = base_delay
        self._max_delay = max_delay

        self._queue: asyncio.Queue[_Job] | None = None
        self._workers: list[asyncio.Task] = []
        self._metrics = BackgroundQueueMetrics()

    @property
    def running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Start the worker tasks. Safe to call more than once."""
        self._ensure_workers()

    def _ensure_workers(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self._max_queue_size)
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"background-persist-{i}")
            for i in range(self._concurrency)
        ]
        logger.info(
            "Background persistence queue started",
            stage=Stage.BACKGROUND,
            concurrency=self._concurrency,
            max_queue_size=self._max_queue_size,
        )

    def submit(
        self,
        fn: Callable[..., Awaitable[Any]],
        *args: Any,
        description: str = "persist",
        **kwargs: Any,
    ) -> bool:
        """
        Queue ``fn(*args, **kwargs)`` without waiting for it.

        Must be called from inside a running event loop.

        Returns:
            bool: False if the queue was full and the job was dropped
        """
        self._ensure_workers()
        self._metrics.submitted += 1
        try:
            self._queue.put_nowait(_Job(fn=fn, args=args, kwargs=kwargs, description=description))
        except asyncio.QueueFull:
            self._metrics.dropped += 1
            logger.warning(
                "Background persistence queue full, job dropped",
                stage=Stage.BACKGROUND,
                operation=description,
                queued=self._queue.qsize(),
            )
            return False
        return True

    async def _worker(self, worker_id: int) -> None:
        while True:
            job = await self._queue.get()
            self._metrics.in_flight += 1
            try:
                await retry_with_fallback(
                    job.fn,
                    *job.args,
                    max_attempts=self._max_attempts,
                    base_delay=self._base_delay,
                    max_delay=self._max_delay,
                    description=job.description,
                    **job.kwargs,
                )
                self._metrics.succeeded += 1
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                self._record_failure(job, exc, worker_id)
            finally:
                self._metrics.in_flight -= 1
                self._queue.task_done()

    def _record_failure(self, job: _Job, exc: Exception, worker_id: int) -> None:
        error = describe_error(exc)
        self._metrics.failed += 1
        self._metrics.last_error = error
        self._metrics.recent_failures.append(f"{job.description}: {error}")
        del self._metrics.recent_failures[: -self._MAX_RECENT_FAILURES]
        logger.error(
            "Background persistence failed",
            stage=Stage.BACKGROUND,
            operation=job.description,
            worker=worker_id,
            error=error,
        )

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for every accepted job to finish.

        Returns:
            bool: False if the timeout elapsed first
        """
        if self._queue is None:
            return True
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self, drain_timeout: float | None = 5.0) -> None:
        """Drain (bounded by ``drain_timeout``) and cancel the workers."""
        if not self._workers:
            return
        drained = await self.drain(timeout=drain_timeout)
        if not drained:
            logger.warning(
                "Background persistence queue stopped with pending jobs",
                stage=Stage.SHUTDOWN,
                queued=self._queue.qsize(),
            )
        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("Background persistence queue stopped", stage=Stage.SHUTDOWN, **self.metrics())

    def metrics(self) -> dict[str, Any]:
        queued = self._queue.qsize() if self._queue is not None else 0
        return self._metrics.to_dict(queued)

    def recent_failures(self) -> list[str]:
        return list(self._metrics.recent_failures)


def persist_in_background(
    queue: BackgroundPersistenceQueue,
    fn: Callable[..., Awaitable[Any]],
    *args: Any,
    description: str = "persist",
    **kwargs: Any,
) -> bool:
    """
    Fire-and-forget persistence with retry/backoff applied by the worker.

    Never raises; the outcome is visible through ``queue.metrics()``.
    """
    return queue.submit(fn, *args, description=description, **kwargs)
