"""
Document Record Store (MongoDB / motor)

Backup persistent tier. Documents mirror the relational row:

    { key, value, ttl, created_at, updated_at, expire_at }

- unique index on key; upsert via update_one(..., upsert=True)
- TTL index on expire_at (expireAfterSeconds=0) so MongoDB removes
  expired documents natively; reads still filter on expire_at because the
  TTL monitor only runs about once a minute

Author: System Architect
Date: 2026-01-12
"""

from typing import Any

from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from badge_store.core.config.constants import Stage
from badge_store.core.logging.logger import get_logger
from badge_store.core.models.records import PersistentRecord, compute_expire_at, utcnow, validate_record_input
from badge_store.infrastructure.connection.mongo_manager import MongoConnectionManager

logger = get_logger(__name__)

_PROJECTION = {"_id": False}


def _live_filter(key: str) -> dict[str, Any]:
    return {
        "key": key,
        "$or": [{"expire_at": None}, {"expire_at": {"$gt": utcnow()}}],
    }


class MongoRecordStore:
    """RecordStore backed by a MongoDB collection."""

    name = "backup"

    def __init__(self, manager: MongoConnectionManager):
        self._manager = manager

    @property
    def manager(self) -> MongoConnectionManager:
        return self._manager

    def is_available(self) -> bool:
        return self._manager.is_connected

    async def initialize(self) -> None:
        """Create the unique key index and the TTL index."""

        async def _indexes(collection: AsyncIOMotorCollection) -> None:
            await collection.create_index([("key", ASCENDING)], unique=True, name="key_unique")
            await collection.create_index(
                [("expire_at", ASCENDING)], expireAfterSeconds=0, name="expire_at_ttl"
            )

        await self._manager.execute_operation(_indexes)
        logger.info("Key/value collection initialized", stage=Stage.INITIALIZATION, backend=self.name)

    async def get(self, key: str) -> PersistentRecord | None:
        async def _get(collection: AsyncIOMotorCollection) -> PersistentRecord | None:
            doc = await collection.find_one(_live_filter(key), _PROJECTION)
            return PersistentRecord.from_document(doc) if doc else None

        return await self._manager.execute_operation(_get)

    async def upsert(self, key: str, value: Any, ttl: int | None = None) -> PersistentRecord:
        validate_record_input(key, value)
        now = utcnow()
        record = PersistentRecord.build(key, value, ttl, now=now)
        update = {
            "$set": {
                "value": value,
                "ttl": ttl,
                "updated_at": now,
                "expire_at": compute_expire_at(now, ttl),
            },
            "$setOnInsert": {"key": key, "created_at": now},
        }

        async def _upsert(collection: AsyncIOMotorCollection) -> None:
            try:
                await collection.update_one({"key": key}, update, upsert=True)
            except DuplicateKeyError:
                # Two concurrent upserts raced on insert; the document exists now.
                await collection.update_one({"key": key}, update, upsert=False)

        await self._manager.execute_operation(_upsert)
        return record

    async def delete(self, key: str) -> bool:
        async def _delete(collection: AsyncIOMotorCollection) -> bool:
            result = await collection.delete_one({"key": key})
            return result.deleted_count > 0

        return await self._manager.execute_operation(_delete)

    async def exists(self, key: str) -> bool:
        async def _exists(collection: AsyncIOMotorCollection) -> bool:
            return await collection.count_documents(_live_filter(key), limit=1) > 0

        return await self._manager.execute_operation(_exists)

    async def truncate(self) -> int:
        async def _truncate(collection: AsyncIOMotorCollection) -> int:
            result = await collection.delete_many({})
            return result.deleted_count

        removed = await self._manager.execute_operation(_truncate)
        logger.info("Key/value collection truncated", stage=Stage.STORE_DELETE, backend=self.name, count=removed)
        return removed

    async def clean_expired(self) -> int:
        async def _clean(collection: AsyncIOMotorCollection) -> int:
            result = await collection.delete_many({"expire_at": {"$ne": None, "$lte": utcnow()}})
            return result.deleted_count

        removed = await self._manager.execute_operation(_clean)
        if removed:
            logger.info("Expired records removed", stage=Stage.STORE_SWEEP, backend=self.name, count=removed)
        return removed

    async def start(self) -> None:
        """Expiry is handled by the TTL index."""

    async def close(self) -> None:
        """Nothing to release beyond the manager's client."""
