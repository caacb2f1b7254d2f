"""
Record Store Protocol

Persistent backends (relational primary, document backup) implement this
protocol: unique-key upsert, lookup by key with expiry filtering,
delete by key and truncate.

Unlike CacheService, record stores DO raise: connectivity failures surface
as StorageConnectionError so the storage service can fall back to the next
tier.

Author: System Architect
Date: 2026-01-12
"""

from typing import Any, Protocol, runtime_checkable

from badge_store.core.models.records import PersistentRecord


@runtime_checkable
class RecordStore(Protocol):
    """
    Protocol for persistent key/value record stores.

    Implementations:
    - SqlRecordStore: PostgreSQL / SQLite via SQLAlchemy async
    - MongoRecordStore: MongoDB via motor
    """

    name: str

    async def initialize(self) -> None:
        """Create table/collection and indexes if missing."""
        ...

    async def get(self, key: str) -> PersistentRecord | None:
        """Return the unexpired record for key, or None."""
        ...

    async def upsert(self, key: str, value: Any, ttl: int | None = None) -> PersistentRecord:
        """Insert or overwrite the record for key."""
        ...

    async def delete(self, key: str) -> bool:
        ...

    async def exists(self, key: str) -> bool:
        ...

    async def truncate(self) -> int:
        """Remove every record. Returns the number removed."""
        ...

    async def clean_expired(self) -> int:
        """Remove records past their expiry. Returns the number removed."""
        ...

    def is_available(self) -> bool:
        ...
