"""
Test Fixtures Package

Shared test doubles for consistent testing across all layers.
"""

from .fakes import (
    FailingRecordStore,
    FakeClock,
    FakeRedis,
    InMemoryRecordStore,
    ScriptedConnectionManager,
    SlowRecordStore,
    StubConnectionManager,
)

__all__ = [
    "FailingRecordStore",
    "FakeClock",
    "FakeRedis",
    "InMemoryRecordStore",
    "ScriptedConnectionManager",
    "SlowRecordStore",
    "StubConnectionManager",
]
