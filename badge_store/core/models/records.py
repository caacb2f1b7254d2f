"""
Storage Data Model

- CacheEntry: what the cache tier holds
- PersistentRecord: what the relational/document stores hold
- CacheStats: lifetime counters reported by a cache service

Author: System Architect
Date: 2026-01-12
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

import orjson

from badge_store.core.exceptions import RecordValidationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CacheEntry:
    """
    A single cache entry.

    Attributes:
        key: Unique key within the backend
        value: Any JSON-serializable structure
        ttl_seconds: Expiry in seconds; None or 0 means the backend default
    """
    key: str
    value: Any
    ttl_seconds: int | None = None

    def effective_ttl(self, default_ttl: int) -> int:
        return self.ttl_seconds if self.ttl_seconds and self.ttl_seconds > 0 else default_ttl


@dataclass
class PersistentRecord:
    """
    A record in a persistent store.

    expire_at is derived from updated_at + ttl_seconds whenever
    ttl_seconds > 0; otherwise the record has no expiry.
    """
    key: str
    value: Any
    ttl_seconds: int | None = None
    expire_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def build(cls, key: str, value: Any, ttl_seconds: int | None, now: datetime | None = None) -> "PersistentRecord":
        """Create a record stamped at ``now`` with its expiry computed."""
        now = now or utcnow()
        return cls(
            key=key,
            value=value,
            ttl_seconds=ttl_seconds,
            expire_at=compute_expire_at(now, ttl_seconds),
            created_at=now,
            updated_at=now,
        )

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expire_at is None:
            return False
        now = now or utcnow()
        expire_at = self.expire_at
        if expire_at.tzinfo is None:
            expire_at = expire_at.replace(tzinfo=timezone.utc)
        return expire_at <= now

    def to_document(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "ttl": self.ttl_seconds,
            "expire_at": self.expire_at,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "PersistentRecord":
        return cls(
            key=doc["key"],
            value=doc.get("value"),
            ttl_seconds=doc.get("ttl"),
            expire_at=doc.get("expire_at"),
            created_at=doc.get("created_at") or utcnow(),
            updated_at=doc.get("updated_at") or utcnow(),
        )


def compute_expire_at(now: datetime, ttl_seconds: int | None) -> datetime | None:
    if ttl_seconds and ttl_seconds > 0:
        return now + timedelta(seconds=ttl_seconds)
    return None


@dataclass
class CacheStats:
    """
    Lifetime cache counters.

    hit_rate is a percentage (0-100) rounded to two decimals.
    """
    hits: int = 0
    misses: int = 0
    key_count: int = 0
    group_count: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return round(self.hits / total * 100, 2)

    def to_dict(self) -> dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "key_count": self.key_count,
            "group_count": self.group_count,
            "hit_rate": self.hit_rate,
        }


def validate_record_input(key: str, value: Any) -> None:
    """
    Reject records no backend can store.

    Raises:
        RecordValidationError: Empty key or a value that is not JSON-serializable
    """
    if not isinstance(key, str) or not key:
        raise RecordValidationError("Record key must be a non-empty string", details={"key": repr(key)})
    try:
        orjson.dumps(value)
    except TypeError as e:
        raise RecordValidationError(
            f"Record value for '{key}' is not JSON-serializable",
            details={"key": key, "value_type": type(value).__name__, "original_error": str(e)},
        ) from e
