"""
Unit Tests for the Background Persistence Queue
"""

import asyncio

import pytest
import pytest_asyncio

from badge_store.core.resilience import BackgroundPersistenceQueue, persist_in_background


@pytest_asyncio.fixture
async def queue():
    queue = BackgroundPersistenceQueue(concurrency=2, max_queue_size=10, max_attempts=2, base_delay=0.001, max_delay=0.001)
    await queue.start()
    yield queue
    await queue.stop(drain_timeout=1.0)


@pytest.mark.unit
class TestBackgroundPersistenceQueue:
    @pytest.mark.asyncio
    async def test_submitted_job_runs(self, queue):
        written = {}

        async def write(key, value):
            written[key] = value

        assert persist_in_background(queue, write, "github:octocat", {"stars": 1}, description="persist github")
        assert await queue.drain(timeout=1.0)

        assert written == {"github:octocat": {"stars": 1}}
        assert queue.metrics()["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_retryable_failure_is_retried(self, queue):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) == 1:
                raise ConnectionError("reset")

        queue.submit(flaky)
        await queue.drain(timeout=1.0)

        assert len(attempts) == 2
        assert queue.metrics()["succeeded"] == 1

    @pytest.mark.asyncio
    async def test_final_failure_is_counted_not_raised(self, queue):
        async def broken():
            raise ValueError("bad record")

        queue.submit(broken, description="persist broken")
        await queue.drain(timeout=1.0)

        metrics = queue.metrics()
        assert metrics["failed"] == 1
        assert metrics["last_error"] == "ValueError: bad record"
        assert queue.recent_failures() == ["persist broken: ValueError: bad record"]

    @pytest.mark.asyncio
    async def test_full_queue_drops_jobs(self):
        queue = BackgroundPersistenceQueue(concurrency=1, max_queue_size=1)
        release = asyncio.Event()

        async def blocked():
            await release.wait()

        try:
            assert queue.submit(blocked) is True
            await asyncio.sleep(0)
            assert queue.submit(blocked) is True
            assert queue.submit(blocked) is False

            metrics = queue.metrics()
            assert metrics["submitted"] == 3
            assert metrics["dropped"] == 1
        finally:
            release.set()
            await queue.stop(drain_timeout=1.0)

    @pytest.mark.asyncio
    async def test_every_job_accounted_for(self, queue):
        async def ok():
            pass

        async def bad():
            raise ValueError("x")

        for fn in (ok, bad, ok, bad, ok):
            queue.submit(fn)
        await queue.drain(timeout=1.0)

        metrics = queue.metrics()
        assert metrics["submitted"] == metrics["succeeded"] + metrics["failed"] + metrics["dropped"]
        assert metrics["in_flight"] == 0
        assert metrics["queued"] == 0

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self):
        queue = BackgroundPersistenceQueue(concurrency=1)
        await queue.start()
        assert queue.running

        await queue.stop()
        await queue.stop()

        assert not queue.running
