"""
Test Doubles for the Storage Layer

- FakeClock: manually advanced monotonic clock
- FakeRedis: async in-memory subset of redis.asyncio.Redis
- StubConnectionManager: execute_operation() over an arbitrary resource,
  with a switch to simulate an unreachable backend
- InMemoryRecordStore / FailingRecordStore / SlowRecordStore: RecordStore doubles
"""

import asyncio
import fnmatch
from contextlib import asynccontextmanager
from typing import Any

from badge_store.core.exceptions import CacheConnectionError, StorageConnectionError
from badge_store.core.models.records import PersistentRecord, utcnow, validate_record_input
from badge_store.infrastructure.connection.base import ConnectionManager


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRedis:
    """Enough of redis.asyncio.Redis for the cache service (decode_responses=True)."""

    def __init__(self, clock: FakeClock | None = None):
        self.clock = clock or FakeClock()
        self.data: dict[str, str] = {}
        self.expiry: dict[str, float] = {}
        self.closed = False

    def _alive(self, key: str) -> bool:
        if key not in self.data:
            return False
        expires = self.expiry.get(key)
        if expires is not None and self.clock() >= expires:
            del self.data[key]
            del self.expiry[key]
            return False
        return True

    async def ping(self) -> bool:
        return True

    async def get(self, key: str) -> str | None:
        return self.data[key] if self._alive(key) else None

    async def set(self, key: str, value: str, ex: int | None = None) -> bool:
        self.data[key] = value
        if ex:
            self.expiry[key] = self.clock() + ex
        else:
            self.expiry.pop(key, None)
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self._alive(key):
                removed += 1
            self.data.pop(key, None)
            self.expiry.pop(key, None)
        return removed

    async def exists(self, *keys: str) -> int:
        return sum(1 for key in keys if self._alive(key))

    async def flushdb(self) -> bool:
        self.data.clear()
        self.expiry.clear()
        return True

    async def scan_iter(self, match: str = "*", count: int | None = None):
        for key in list(self.data):
            if self._alive(key) and fnmatch.fnmatchcase(key, match):
                yield key

    async def aclose(self) -> None:
        self.closed = True


class StubConnectionManager:
    """
    Minimal stand-in for a ConnectionManager.

    execute_operation() hands ``resource`` to the operation, or raises
    ``unavailable_error`` while ``available`` is False.
    """

    def __init__(self, resource: Any, name: str = "stub", unavailable_error=CacheConnectionError):
        self.resource = resource
        self.name = name
        self.unavailable_error = unavailable_error
        self.available = True
        self.calls = 0

    @property
    def is_connected(self) -> bool:
        return self.available

    async def ensure_connection(self) -> bool:
        return self.available

    async def execute_operation(self, operation, *, timeout: float | None = None):
        self.calls += 1
        if not self.available:
            raise self.unavailable_error(f"{self.name} is unavailable")
        return await operation(self.resource)

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy" if self.available else "disconnected", "backend": self.name}


class ScriptedConnectionManager(ConnectionManager):
    """
    Real ConnectionManager whose backend outcome is scripted.

    ``open_failures`` connection attempts fail before one succeeds
    (-1 means every attempt fails). Opening also fails while ``probe_ok``
    is False, as the real managers ping on open. Sleeps are recorded, not
    slept; set ``reconnect_gate`` to hold reconnect attempts until it is set.
    """

    def __init__(self, open_failures: int = 0, **kwargs: Any):
        self.open_failures = open_failures
        self.open_calls = 0
        self.close_calls = 0
        self.probe_ok = True
        self.sleeps: list[float] = []
        self.reconnect_gate: asyncio.Event | None = None
        self.resource = {"name": "resource"}
        kwargs.setdefault("heartbeat_interval", 0)
        kwargs.setdefault("max_attempts", 5)
        kwargs.setdefault("base_delay", 1.0)
        kwargs.setdefault("max_delay", 30.0)
        super().__init__("scripted", "db://user:secret@localhost:1234/test", sleep=self._record_sleep, **kwargs)

    async def _record_sleep(self, delay: float) -> None:
        self.sleeps.append(delay)
        if self.reconnect_gate is not None:
            await self.reconnect_gate.wait()

    async def _open(self) -> None:
        self.open_calls += 1
        if self.open_failures < 0 or self.open_calls <= self.open_failures:
            raise ConnectionRefusedError("connection refused")
        if not self.probe_ok:
            raise ConnectionResetError("socket closed")

    async def _probe(self) -> None:
        if not self.probe_ok:
            raise ConnectionResetError("socket closed")

    async def _close(self) -> None:
        self.close_calls += 1

    @asynccontextmanager
    async def _acquire(self):
        yield self.resource

    async def wait_for_reconnects(self) -> None:
        if self._reconnect_task is not None:
            await self._reconnect_task


class InMemoryRecordStore:
    """RecordStore double holding PersistentRecords in a dict."""

    def __init__(self, name: str = "primary"):
        self.name = name
        self.records: dict[str, PersistentRecord] = {}
        self.available = True

    async def initialize(self) -> None:
        pass

    async def get(self, key: str) -> PersistentRecord | None:
        record = self.records.get(key)
        if record is None or record.is_expired():
            return None
        return record

    async def upsert(self, key: str, value: Any, ttl: int | None = None) -> PersistentRecord:
        validate_record_input(key, value)
        existing = self.records.get(key)
        record = PersistentRecord.build(key, value, ttl)
        if existing is not None:
            record.created_at = existing.created_at
        self.records[key] = record
        return record

    async def delete(self, key: str) -> bool:
        return self.records.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def truncate(self) -> int:
        count = len(self.records)
        self.records.clear()
        return count

    async def clean_expired(self) -> int:
        now = utcnow()
        expired = [k for k, r in self.records.items() if r.is_expired(now)]
        for key in expired:
            del self.records[key]
        return len(expired)

    def is_available(self) -> bool:
        return self.available

    async def start(self) -> None:
        pass

    async def close(self) -> None:
        pass


class FailingRecordStore(InMemoryRecordStore):
    """Every call fails as an unreachable backend would."""

    def __init__(self, name: str = "primary"):
        super().__init__(name)
        self.available = False
        self.calls = 0

    def _fail(self):
        self.calls += 1
        raise StorageConnectionError(f"{self.name} is unavailable")

    async def get(self, key: str):
        self._fail()

    async def upsert(self, key: str, value: Any, ttl: int | None = None):
        self._fail()

    async def delete(self, key: str):
        self._fail()

    async def exists(self, key: str):
        self._fail()

    async def truncate(self):
        self._fail()

    async def clean_expired(self):
        self._fail()


class SlowRecordStore(InMemoryRecordStore):
    """Answers get() only after ``delay`` seconds."""

    def __init__(self, name: str = "primary", delay: float = 1.0):
        super().__init__(name)
        self.delay = delay

    async def get(self, key: str):
        await asyncio.sleep(self.delay)
        return await super().get(key)
