"""
Integration Tests for the Hybrid Storage Stack

Memory cache in front of a real SQLite primary (SQLAlchemy + aiosqlite)
with an in-memory backup, wired the way the service container wires
production backends.
"""

import pytest

from badge_store.application.accessors import GitHubAccessor
from badge_store.core.resilience import BackgroundPersistenceQueue
from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager
from badge_store.infrastructure.storage import SqlRecordStore, StorageService


@pytest.mark.integration
class TestHybridStack:
    @pytest.mark.asyncio
    async def test_value_survives_cache_loss(self, memory_cache, sql_store, backup_store):
        service = StorageService(memory_cache, sql_store, backup_store)

        assert await service.set("github:octocat:dark", {"count": 42}, ttl=120)
        await memory_cache.clear()

        assert await service.get("github:octocat:dark") == {"count": 42}
        assert backup_store.records == {}

    @pytest.mark.asyncio
    async def test_primary_outage_falls_back_to_backup(self, memory_cache, backup_store):
        manager = SqlConnectionManager(
            url="sqlite+aiosqlite:////nonexistent-dir/badges.db", heartbeat_interval=0, max_attempts=0
        )
        service = StorageService(memory_cache, SqlRecordStore(manager, sweep_interval=0), backup_store)
        await backup_store.upsert("github:octocat", {"count": 1})

        try:
            assert await service.get("github:octocat") == {"count": 1}
            assert await service.set("github:torvalds", {"count": 2})
            assert "github:torvalds" in backup_store.records
            assert service.get_storage_status()["fallback_mode"] == "backup"
        finally:
            await manager.disconnect()

    @pytest.mark.asyncio
    async def test_accessor_round_trip_through_queue(self, memory_cache, sql_store):
        service = StorageService(memory_cache, sql_store)
        queue = BackgroundPersistenceQueue(concurrency=2, max_attempts=2, base_delay=0.001, max_delay=0.001)
        fetched = []

        async def fetch(username):
            fetched.append(username)
            return {"login": username, "stars": 7}

        accessor = GitHubAccessor(service, fetch, queue=queue, staleness_seconds=3600)
        try:
            assert await accessor.get_or_fetch("octocat") == {"login": "octocat", "stars": 7}
            await queue.drain(timeout=2.0)

            await memory_cache.clear()
            assert await accessor.get_or_fetch("octocat") == {"login": "octocat", "stars": 7}
        finally:
            await queue.stop()

        assert fetched == ["octocat"]
        record = await sql_store.get("github:octocat")
        assert record.value["data"]["stars"] == 7
