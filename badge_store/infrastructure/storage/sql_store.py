"""
Relational Record Store (SQLAlchemy async)

Primary persistent tier. One row per key in ``key_value_store``:

    id | key (unique) | value (JSON/JSONB) | ttl | created_at | updated_at | expire_at

- set is a unique-key upsert (INSERT ... ON CONFLICT (key) DO UPDATE);
  created_at is kept, value/ttl/updated_at/expire_at are overwritten
- reads filter out rows whose expire_at has passed
- a periodic sweep deletes expired rows

Every statement runs through SqlConnectionManager.execute_operation(), so
connectivity failures surface as StorageConnectionError and let the
storage service fall back to the backup tier.

Author: System Architect
Date: 2026-01-12
"""

import asyncio
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, DateTime, Index, Integer, String, delete, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from badge_store.core.config.constants import Stage
from badge_store.core.exceptions import ConstraintViolationError
from badge_store.core.logging.logger import get_logger
from badge_store.core.models.records import PersistentRecord, compute_expire_at, utcnow, validate_record_input
from badge_store.core.resilience.failures import describe_error
from badge_store.infrastructure.connection.sql_manager import SqlConnectionManager

logger = get_logger(__name__)


class Base(DeclarativeBase):
    pass


class KeyValueRow(Base):
    __tablename__ = "key_value_store"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    value: Mapped[Any] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)
    ttl: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    expire_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index("idx_key_value_store_expire_at", "expire_at"),
    )


def _aware(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes; everything is stored in UTC.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_record(row: KeyValueRow) -> PersistentRecord:
    return PersistentRecord(
        key=row.key,
        value=row.value,
        ttl_seconds=row.ttl,
        expire_at=_aware(row.expire_at),
        created_at=_aware(row.created_at),
        updated_at=_aware(row.updated_at),
    )


def _live(now: datetime):
    return or_(KeyValueRow.expire_at.is_(None), KeyValueRow.expire_at > now)


class SqlRecordStore:
    """
    RecordStore backed by PostgreSQL or SQLite.

    Args:
        manager: Connection manager owning the engine
        sweep_interval: Seconds between expired-row sweeps (<= 0 disables)
    """

    name = "primary"

    def __init__(self, manager: SqlConnectionManager, sweep_interval: int = 3600):
        self._manager = manager
        self._sweep_interval = sweep_interval
        self._sweep_task: asyncio.Task | None = None

    @property
    def manager(self) -> SqlConnectionManager:
        return self._manager

    def is_available(self) -> bool:
        return self._manager.is_connected

    async def initialize(self) -> None:
        """Create the table and indexes if they do not exist."""

        async def _create(session: AsyncSession) -> None:
            conn = await session.connection()
            await conn.run_sync(Base.metadata.create_all)

        await self._manager.execute_operation(_create)
        logger.info("Key/value table initialized", stage=Stage.INITIALIZATION, backend=self.name)

    async def get(self, key: str) -> PersistentRecord | None:
        async def _get(session: AsyncSession) -> PersistentRecord | None:
            result = await session.execute(
                select(KeyValueRow).where(KeyValueRow.key == key, _live(utcnow()))
            )
            row = result.scalar_one_or_none()
            return _to_record(row) if row is not None else None

        return await self._manager.execute_operation(_get)

    async def upsert(self, key: str, value: Any, ttl: int | None = None) -> PersistentRecord:
        validate_record_input(key, value)
        now = utcnow()
        record = PersistentRecord.build(key, value, ttl, now=now)
        values = {
            "key": key,
            "value": value,
            "ttl": ttl,
            "created_at": now,
            "updated_at": now,
            "expire_at": compute_expire_at(now, ttl),
        }

        async def _upsert(session: AsyncSession) -> None:
            dialect = session.get_bind().dialect.name
            if dialect in ("postgresql", "sqlite"):
                insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
                stmt = insert(KeyValueRow).values(**values)
                stmt = stmt.on_conflict_do_update(
                    index_elements=[KeyValueRow.key],
                    set_={
                        "value": stmt.excluded.value,
                        "ttl": stmt.excluded.ttl,
                        "updated_at": stmt.excluded.updated_at,
                        "expire_at": stmt.excluded.expire_at,
                    },
                )
                await session.execute(stmt)
                return

            existing = (
                await session.execute(select(KeyValueRow).where(KeyValueRow.key == key))
            ).scalar_one_or_none()
            if existing is None:
                session.add(KeyValueRow(**values))
            else:
                existing.value = value
                existing.ttl = ttl
                existing.updated_at = now
                existing.expire_at = values["expire_at"]

        try:
            await self._manager.execute_operation(_upsert)
        except IntegrityError as e:
            raise ConstraintViolationError.from_exception(e, key=key, backend=self.name) from e
        return record

    async def delete(self, key: str) -> bool:
        async def _delete(session: AsyncSession) -> bool:
            result = await session.execute(delete(KeyValueRow).where(KeyValueRow.key == key))
            return result.rowcount > 0

        return await self._manager.execute_operation(_delete)

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def truncate(self) -> int:
        async def _truncate(session: AsyncSession) -> int:
            result = await session.execute(delete(KeyValueRow))
            return result.rowcount or 0

        removed = await self._manager.execute_operation(_truncate)
        logger.info("Key/value table truncated", stage=Stage.STORE_DELETE, backend=self.name, count=removed)
        return removed

    async def clean_expired(self) -> int:
        async def _clean(session: AsyncSession) -> int:
            result = await session.execute(
                delete(KeyValueRow).where(
                    KeyValueRow.expire_at.is_not(None), KeyValueRow.expire_at <= utcnow()
                )
            )
            return result.rowcount or 0

        removed = await self._manager.execute_operation(_clean)
        if removed:
            logger.info("Expired records removed", stage=Stage.STORE_SWEEP, backend=self.name, count=removed)
        return removed

    # -------------------------------------------------------------------------
    # Sweep task
    # -------------------------------------------------------------------------

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval)
            try:
                await self.clean_expired()
            except Exception as e:
                logger.warning(
                    "Expired record sweep failed",
                    stage=Stage.STORE_SWEEP,
                    backend=self.name,
                    error=describe_error(e),
                )

    async def start(self) -> None:
        if self._sweep_interval > 0 and (self._sweep_task is None or self._sweep_task.done()):
            self._sweep_task = asyncio.create_task(self._sweep_loop(), name="primary-expired-sweep")

    async def close(self) -> None:
        if self._sweep_task is not None:
            self._sweep_task.cancel()
            await asyncio.gather(self._sweep_task, return_exceptions=True)
            self._sweep_task = None
