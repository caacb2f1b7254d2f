"""
Unit Tests for the Relational Record Store

Runs the real SQLAlchemy statements against in-memory SQLite (aiosqlite).
"""

from datetime import timedelta

import pytest

from badge_store.core.exceptions import RecordValidationError, StorageConnectionError
from badge_store.core.models.records import utcnow
from badge_store.infrastructure.storage import sql_store as sql_store_module
from badge_store.infrastructure.storage.sql_store import SqlRecordStore


def _shift_clock(monkeypatch, seconds: float) -> None:
    later = utcnow() + timedelta(seconds=seconds)
    monkeypatch.setattr(sql_store_module, "utcnow", lambda: later)


@pytest.mark.unit
class TestSqlRecordStore:
    @pytest.mark.asyncio
    async def test_upsert_then_get(self, sql_store):
        record = await sql_store.upsert("github:octocat:dark", {"stars": 42}, 120)

        loaded = await sql_store.get("github:octocat:dark")

        assert loaded.value == {"stars": 42}
        assert loaded.ttl_seconds == 120
        assert loaded.expire_at == record.expire_at

    @pytest.mark.asyncio
    async def test_get_missing(self, sql_store):
        assert await sql_store.get("github:nobody") is None

    @pytest.mark.asyncio
    async def test_upsert_overwrites_and_keeps_created_at(self, sql_store):
        await sql_store.upsert("csdn:u1", {"v": 1}, 60)
        first = await sql_store.get("csdn:u1")

        await sql_store.upsert("csdn:u1", {"v": 2}, None)
        second = await sql_store.get("csdn:u1")

        assert second.value == {"v": 2}
        assert second.expire_at is None
        assert second.created_at == first.created_at
        assert second.updated_at >= first.updated_at

    @pytest.mark.asyncio
    async def test_expired_rows_are_invisible(self, sql_store, monkeypatch):
        await sql_store.upsert("github:octocat:dark", 1, 120)

        _shift_clock(monkeypatch, 121)

        assert await sql_store.get("github:octocat:dark") is None
        assert await sql_store.exists("github:octocat:dark") is False

    @pytest.mark.asyncio
    async def test_clean_expired(self, sql_store, monkeypatch):
        await sql_store.upsert("csdn:short", 1, 10)
        await sql_store.upsert("csdn:long", 2, 1000)
        await sql_store.upsert("csdn:forever", 3, None)

        _shift_clock(monkeypatch, 60)

        assert await sql_store.clean_expired() == 1
        assert await sql_store.exists("csdn:long")
        assert await sql_store.exists("csdn:forever")

    @pytest.mark.asyncio
    async def test_delete(self, sql_store):
        await sql_store.upsert("csdn:u1", 1)

        assert await sql_store.delete("csdn:u1") is True
        assert await sql_store.delete("csdn:u1") is False

    @pytest.mark.asyncio
    async def test_truncate(self, sql_store):
        await sql_store.upsert("csdn:u1", 1)
        await sql_store.upsert("github:octocat", 2)

        assert await sql_store.truncate() == 2
        assert await sql_store.get("csdn:u1") is None

    @pytest.mark.asyncio
    async def test_invalid_input_rejected_before_io(self, sql_store):
        with pytest.raises(RecordValidationError):
            await sql_store.upsert("", 1)
        with pytest.raises(RecordValidationError):
            await sql_store.upsert("github:octocat", object())

    @pytest.mark.asyncio
    async def test_availability_follows_manager(self, sql_store, sqlite_manager):
        assert sql_store.is_available()

        await sqlite_manager.disconnect()

        assert not sql_store.is_available()

    @pytest.mark.asyncio
    async def test_sweep_task_lifecycle(self, sqlite_manager):
        store = SqlRecordStore(sqlite_manager, sweep_interval=3600)

        await store.start()
        await store.close()
        await store.close()


@pytest.mark.unit
class TestSqlConnectionManager:
    @pytest.mark.asyncio
    async def test_status_includes_dialect(self, sqlite_manager):
        status = sqlite_manager.get_connection_status()

        assert status["dialect"] == "sqlite"
        assert status["state"] == "connected"

    @pytest.mark.asyncio
    async def test_unreachable_database_raises_connection_error(self):
        from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager

        manager = SqlConnectionManager(
            url="sqlite+aiosqlite:////nonexistent-dir/badges.db", heartbeat_interval=0, max_attempts=0
        )
        store = SqlRecordStore(manager, sweep_interval=0)

        with pytest.raises(StorageConnectionError):
            await store.get("github:octocat")
        await manager.disconnect()

    def test_in_memory_sqlite_uses_static_pool(self):
        from sqlalchemy.pool import StaticPool

        from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager

        memory = SqlConnectionManager(url="sqlite+aiosqlite:///:memory:", heartbeat_interval=0)
        on_disk = SqlConnectionManager(url="sqlite+aiosqlite:////tmp/badges.db", heartbeat_interval=0)

        assert memory._engine_options() == {"poolclass": StaticPool}
        assert "poolclass" not in on_disk._engine_options()

    @pytest.mark.asyncio
    async def test_in_memory_sqlite_keeps_rows_across_sessions(self, sqlite_manager):
        from sqlalchemy import text

        async def create(session):
            await session.execute(text("CREATE TABLE kept (id INTEGER)"))
            await session.execute(text("INSERT INTO kept VALUES (1)"))

        async def count(session):
            return (await session.execute(text("SELECT COUNT(*) FROM kept"))).scalar_one()

        await sqlite_manager.execute_operation(create)

        assert await sqlite_manager.execute_operation(count) == 1
