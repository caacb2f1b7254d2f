"""
Unit Tests for the Storage Service

Covers strategy dispatch, tier fallback, durability policy, timeouts and
the status report.
"""

import pytest

from badge_store.core.config.constants import DurabilityPolicy, FallbackMode, StorageStrategy
from badge_store.core.config.settings import Settings
from badge_store.core.exceptions import RecordValidationError
from badge_store.infrastructure.storage import (
    CacheOnlyStrategy,
    HybridStrategy,
    PersistentOnlyStrategy,
    StorageService,
    StorageTiers,
    build_strategy,
)
from tests.test_fixtures import SlowRecordStore


@pytest.mark.unit
class TestStrategySelection:
    def test_build_strategy_variants(self, memory_cache):
        tiers = StorageTiers(cache=memory_cache)

        assert isinstance(build_strategy("cache_only", tiers), CacheOnlyStrategy)
        assert isinstance(build_strategy(StorageStrategy.PERSISTENT_ONLY, tiers), PersistentOnlyStrategy)
        assert isinstance(build_strategy("hybrid", tiers), HybridStrategy)

    def test_unknown_strategy_rejected(self, memory_cache):
        with pytest.raises(ValueError):
            build_strategy("write_behind", StorageTiers(cache=memory_cache))

    def test_no_persistent_store_downgrades_to_cache_only(self, memory_cache):
        service = StorageService(memory_cache, strategy="hybrid")

        assert service.strategy == StorageStrategy.CACHE_ONLY

    def test_from_settings(self, memory_cache, primary_store):
        settings = Settings(STORAGE_STRATEGY="persistent_only", STORAGE_DEFAULT_TTL=60)

        service = StorageService.from_settings(memory_cache, primary=primary_store, settings=settings)

        assert service.strategy == StorageStrategy.PERSISTENT_ONLY
        assert service.primary is primary_store
        assert service.cache is memory_cache


@pytest.mark.unit
class TestCacheOnly:
    @pytest.mark.asyncio
    async def test_operations_use_cache(self, memory_cache):
        service = StorageService(memory_cache, strategy="cache_only")

        assert await service.set("csdn:u1", {"v": 1})
        assert await service.get("csdn:u1") == {"v": 1}
        assert await service.exists("csdn:u1")
        assert await service.delete("csdn:u1")
        assert await service.get("csdn:u1") is None
        assert await service.clear()

    @pytest.mark.asyncio
    async def test_default_ttl_applied(self, memory_cache, fake_clock):
        service = StorageService(memory_cache, strategy="cache_only", default_ttl=30)

        await service.set("csdn:u1", 1, ttl=0)
        fake_clock.advance(30)

        assert await service.get("csdn:u1") is None


@pytest.mark.unit
class TestPersistentOnly:
    @pytest.mark.asyncio
    async def test_operations_use_primary(self, memory_cache, primary_store, backup_store):
        service = StorageService(memory_cache, primary_store, backup_store, strategy="persistent_only")

        assert await service.set("csdn:u1", {"v": 1}, ttl=60)

        assert primary_store.records["csdn:u1"].value == {"v": 1}
        assert primary_store.records["csdn:u1"].ttl_seconds == 60
        assert backup_store.records == {}
        assert not await memory_cache.exists("csdn:u1")
        assert await service.get("csdn:u1") == {"v": 1}

    @pytest.mark.asyncio
    async def test_backup_used_on_primary_error(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store, strategy="persistent_only")

        assert await service.set("csdn:u1", 1)
        assert await service.get("csdn:u1") == 1
        assert await service.exists("csdn:u1")
        assert await service.delete("csdn:u1")
        assert failing_primary.calls == 4

    @pytest.mark.asyncio
    async def test_every_store_down(self, memory_cache, failing_primary, failing_backup):
        service = StorageService(memory_cache, failing_primary, failing_backup, strategy="persistent_only")

        assert await service.set("csdn:u1", 1) is False
        assert await service.get("csdn:u1") is None
        assert await service.delete("csdn:u1") is False
        assert await service.clear() is False


@pytest.mark.unit
class TestHybridReads:
    @pytest.mark.asyncio
    async def test_cache_hit_skips_persistent_tiers(self, memory_cache, failing_primary):
        service = StorageService(memory_cache, failing_primary)
        await memory_cache.set("github:octocat", 1)

        assert await service.get("github:octocat") == 1
        assert failing_primary.calls == 0

    @pytest.mark.asyncio
    async def test_cache_miss_reads_primary_without_write_back(self, memory_cache, primary_store):
        service = StorageService(memory_cache, primary_store)
        await primary_store.upsert("github:octocat", {"stars": 1}, 60)

        assert await service.get("github:octocat") == {"stars": 1}
        assert not await memory_cache.exists("github:octocat")

    @pytest.mark.asyncio
    async def test_primary_miss_does_not_consult_backup(self, memory_cache, primary_store, backup_store):
        service = StorageService(memory_cache, primary_store, backup_store)
        await backup_store.upsert("github:octocat", 1)

        assert await service.get("github:octocat") is None

    @pytest.mark.asyncio
    async def test_primary_error_falls_back_to_backup(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store)
        await backup_store.upsert("github:octocat", 1)

        assert await service.get("github:octocat") == 1

    @pytest.mark.asyncio
    async def test_exists_checks_every_tier(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store)
        await backup_store.upsert("github:octocat", 1)

        assert await service.exists("github:octocat")
        assert not await service.exists("github:nobody")


@pytest.mark.unit
class TestHybridWrites:
    @pytest.mark.asyncio
    async def test_write_reaches_cache_and_primary(self, memory_cache, primary_store, backup_store):
        service = StorageService(memory_cache, primary_store, backup_store)

        assert await service.set("github:octocat:dark", {"count": 42}, ttl=120)

        assert await memory_cache.get("github:octocat:dark") == {"count": 42}
        assert "github:octocat:dark" in primary_store.records
        assert backup_store.records == {}

    @pytest.mark.asyncio
    async def test_primary_error_writes_backup(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store)

        assert await service.set("github:octocat", 1)

        assert "github:octocat" in backup_store.records

    @pytest.mark.asyncio
    async def test_cache_failure_with_persistent_success(self, redis_cache, redis_manager, primary_store):
        service = StorageService(redis_cache, primary_store)
        redis_manager.available = False

        assert await service.set("github:octocat", 1)
        assert await service.get("github:octocat") == 1

    @pytest.mark.asyncio
    async def test_cache_only_write_accepted_by_default(self, memory_cache, failing_primary, failing_backup):
        service = StorageService(memory_cache, failing_primary, failing_backup)

        assert await service.set("github:octocat", 1) is True
        assert await service.get("github:octocat") == 1

    @pytest.mark.asyncio
    async def test_cache_only_write_rejected_when_persistence_required(
        self, memory_cache, failing_primary, failing_backup
    ):
        service = StorageService(
            memory_cache, failing_primary, failing_backup, durability=DurabilityPolicy.REQUIRE_PERSISTENT
        )

        assert await service.set("github:octocat", 1) is False
        # The cache copy is still there for readers
        assert await memory_cache.get("github:octocat") == 1

    @pytest.mark.asyncio
    async def test_write_fails_when_every_tier_fails(self, redis_cache, redis_manager, failing_primary):
        service = StorageService(redis_cache, failing_primary)
        redis_manager.available = False

        assert await service.set("github:octocat", 1) is False

    @pytest.mark.asyncio
    async def test_invalid_input_raises_before_any_backend(self, memory_cache, failing_primary):
        service = StorageService(memory_cache, failing_primary)

        with pytest.raises(RecordValidationError):
            await service.set("github:octocat", object())
        with pytest.raises(RecordValidationError):
            await service.set("", 1)
        assert failing_primary.calls == 0

    @pytest.mark.asyncio
    async def test_delete_is_or_of_tiers(self, memory_cache, primary_store):
        service = StorageService(memory_cache, primary_store)
        await primary_store.upsert("github:octocat", 1)

        assert await service.delete("github:octocat") is True
        assert await service.delete("github:octocat") is False

    @pytest.mark.asyncio
    async def test_clear_empties_cache_and_primary(self, memory_cache, primary_store):
        service = StorageService(memory_cache, primary_store)
        await service.set("github:octocat", 1)
        await service.set("csdn:u1", 2)

        assert await service.clear()

        assert primary_store.records == {}
        assert memory_cache.get_stats().key_count == 0


@pytest.mark.unit
class TestTimeouts:
    @pytest.mark.asyncio
    async def test_slow_primary_is_treated_as_error(self, memory_cache, backup_store):
        slow = SlowRecordStore("primary", delay=1.0)
        await slow.upsert("github:octocat", "from-primary")
        await backup_store.upsert("github:octocat", "from-backup")
        service = StorageService(memory_cache, slow, backup_store, operation_timeout=0.05)

        assert await service.get("github:octocat") == "from-backup"

    @pytest.mark.asyncio
    async def test_slow_only_store_yields_absent(self, memory_cache):
        slow = SlowRecordStore("primary", delay=1.0)
        await slow.upsert("github:octocat", 1)
        service = StorageService(memory_cache, slow, strategy="persistent_only", operation_timeout=0.05)

        assert await service.get("github:octocat") is None


@pytest.mark.unit
class TestStorageStatus:
    def test_all_tiers_up(self, memory_cache, primary_store, backup_store):
        service = StorageService(memory_cache, primary_store, backup_store)

        assert service.get_storage_status() == {
            "strategy": "hybrid",
            "cache_connected": True,
            "primary_connected": True,
            "backup_connected": True,
            "fallback_mode": "none",
        }

    def test_cache_down(self, redis_cache, redis_manager, primary_store):
        redis_manager.available = False
        service = StorageService(redis_cache, primary_store)

        assert service.get_storage_status()["fallback_mode"] == FallbackMode.PRIMARY.value

    def test_primary_down(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store)

        assert service.get_storage_status()["fallback_mode"] == "backup"

    def test_only_cache_up(self, memory_cache, failing_primary, failing_backup):
        service = StorageService(memory_cache, failing_primary, failing_backup)

        status = service.get_storage_status()

        assert status["fallback_mode"] == "cache"
        assert status["primary_connected"] is False
        assert status["backup_connected"] is False

    def test_nothing_up(self, redis_cache, redis_manager, failing_primary):
        redis_manager.available = False
        service = StorageService(redis_cache, failing_primary)

        assert service.get_storage_status()["fallback_mode"] == "unavailable"

    def test_persistent_only_modes(self, memory_cache, failing_primary, backup_store):
        service = StorageService(memory_cache, failing_primary, backup_store, strategy="persistent_only")

        assert service.get_storage_status()["fallback_mode"] == "backup"

    def test_cache_only_mode(self, memory_cache):
        service = StorageService(memory_cache, strategy="cache_only")

        status = service.get_storage_status()

        assert status["strategy"] == "cache_only"
        assert status["fallback_mode"] == "none"
        assert status["primary_connected"] is False

    def test_status_never_raises(self, memory_cache, primary_store):
        def broken():
            raise RuntimeError("status probe exploded")

        primary_store.is_available = broken
        service = StorageService(memory_cache, primary_store)

        assert service.get_storage_status()["primary_connected"] is False
