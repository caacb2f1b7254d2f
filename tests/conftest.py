"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys

import pytest
import pytest_asyncio

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures import (  # noqa: E402
    FailingRecordStore,
    FakeClock,
    FakeRedis,
    InMemoryRecordStore,
    StubConnectionManager,
)


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch):
    """
    Fresh settings per test, independent of the developer's environment.

    Reconnect/retry delays are shrunk so nothing in the suite really waits.
    """
    from badge_store.core.config import settings as settings_module

    monkeypatch.setenv("CACHE_BACKEND", "memory")
    monkeypatch.setenv("HEARTBEAT_INTERVAL", "0")
    monkeypatch.setenv("RETRY_BASE_DELAY", "0.001")
    monkeypatch.setenv("RETRY_MAX_DELAY", "0.01")
    monkeypatch.setenv("RECONNECT_BASE_DELAY", "0.001")
    monkeypatch.setenv("RECONNECT_MAX_DELAY", "0.01")
    for name in ("PRIMARY_DB_URL", "BACKUP_DB_URI", "STORAGE_STRATEGY", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = settings_module.reload_settings()
    yield settings
    settings_module._settings = None


# ============================================================================
# Cache Fixtures
# ============================================================================


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def memory_cache(fake_clock):
    """In-memory cache on a manual clock, no background sweep."""
    from badge_store.infrastructure.cache.memory_cache import MemoryCacheService

    return MemoryCacheService(default_ttl=300, check_period=0, max_keys=100, clock=fake_clock)


@pytest.fixture
def fake_redis(fake_clock):
    return FakeRedis(clock=fake_clock)


@pytest.fixture
def redis_manager(fake_redis):
    """Connection manager stub handing out the in-memory Redis."""
    return StubConnectionManager(fake_redis, name="redis")


@pytest.fixture
def redis_cache(redis_manager):
    from badge_store.infrastructure.cache.redis_cache import RedisCacheService

    return RedisCacheService(redis_manager, default_ttl=300)


# ============================================================================
# Record Store Fixtures
# ============================================================================


@pytest.fixture
def primary_store():
    return InMemoryRecordStore("primary")


@pytest.fixture
def backup_store():
    return InMemoryRecordStore("backup")


@pytest.fixture
def failing_primary():
    return FailingRecordStore("primary")


@pytest.fixture
def failing_backup():
    return FailingRecordStore("backup")


@pytest_asyncio.fixture
async def sqlite_manager():
    """SqlConnectionManager on an in-memory SQLite database."""
    from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager

    manager = SqlConnectionManager(url="sqlite+aiosqlite:///:memory:", heartbeat_interval=0)
    assert await manager.connect()
    yield manager
    await manager.disconnect()


@pytest_asyncio.fixture
async def sql_store(sqlite_manager):
    from badge_store.infrastructure.storage.sql_store import SqlRecordStore

    store = SqlRecordStore(sqlite_manager, sweep_interval=0)
    await store.initialize()
    yield store
    await store.close()
