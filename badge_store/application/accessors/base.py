"""
Platform Data Accessor - "get user data or fetch it" over the storage service

Flow:
    get_or_fetch(identity)
        ├── storage.get(key_for(identity))
        ├── fresh?  → return cached data
        ├── absent or stale → fetch upstream (retry_with_fallback,
        │                     falling back to the stale copy)
        └── persist the fresh envelope through the background queue

Stored values are envelopes so the staleness rule can be applied without
depending on backend timestamps:

    {"data": {...}, "last_updated": "2026-01-12T10:00:00+00:00"}

Upstream scraping itself is injected as ``fetcher``; accessors only own
keys, staleness and persistence.

Author: System Architect
Date: 2026-01-12
"""

from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import get_settings
from badge_store.core.exceptions import StorageConnectionError, UpstreamFetchError
from badge_store.core.logging.logger import get_logger
from badge_store.core.models.records import utcnow
from badge_store.core.resilience.background import BackgroundPersistenceQueue, persist_in_background
from badge_store.core.resilience.failures import describe_error
from badge_store.core.resilience.retry import retry_with_fallback
from badge_store.infrastructure.storage.storage_service import StorageService

logger = get_logger(__name__)

Fetcher = Callable[..., Awaitable[Any | None]]

# Persisted records outlive the staleness window so a stale copy can still
# be served when the upstream platform is down.
DEFAULT_RECORD_TTL = 7 * 24 * 3600

_STALE = object()


def wrap_envelope(data: Any, now: datetime | None = None) -> dict[str, Any]:
    return {"data": data, "last_updated": (now or utcnow()).isoformat()}


def envelope_timestamp(envelope: Any) -> datetime | None:
    if not isinstance(envelope, dict):
        return None
    raw = envelope.get("last_updated")
    if not isinstance(raw, str):
        return None
    try:
        stamp = datetime.fromisoformat(raw)
    except ValueError:
        return None
    if stamp.tzinfo is None:
        stamp = stamp.replace(tzinfo=timezone.utc)
    return stamp


class PlatformDataAccessor(ABC):
    """
    Base class for per-platform accessors.

    Args:
        storage: Storage service holding the envelopes
        fetcher: Async upstream fetch taking the same identity arguments as
            key_for(); returns None when the user does not exist
        queue: Background persistence queue; without one, writes are awaited
        staleness_seconds: Age after which a record is refetched
        record_ttl: TTL of persisted envelopes
        retry_attempts: Upstream fetch attempts
    """

    platform: str = "platform"

    def __init__(
        self,
        storage: StorageService,
        fetcher: Fetcher,
        *,
        queue: BackgroundPersistenceQueue | None = None,
        staleness_seconds: int | None = None,
        record_ttl: int = DEFAULT_RECORD_TTL,
        retry_attempts: int | None = None,
        retry_base_delay: float | None = None,
    ):
        self._storage = storage
        self._fetcher = fetcher
        self._queue = queue
        self._staleness_seconds = (
            staleness_seconds
            if staleness_seconds is not None
            else get_settings().app.ACCESSOR_STALENESS_SECONDS
        )
        self._record_ttl = record_ttl
        self._retry_attempts = retry_attempts
        self._retry_base_delay = retry_base_delay

    @property
    def staleness_seconds(self) -> int:
        return self._staleness_seconds

    @abstractmethod
    def key_for(self, *identity: Any) -> str:
        """Storage key for the identity arguments."""

    async def get_cached(self, *identity: Any) -> dict[str, Any] | None:
        """The stored envelope, or None. Never raises for backend trouble."""
        envelope = await self._storage.get(self.key_for(*identity))
        if envelope is None:
            return None
        if not isinstance(envelope, dict) or "data" not in envelope:
            logger.warning(
                "Ignoring malformed stored record",
                stage=Stage.ACCESSOR,
                platform=self.platform,
                cache_key=self.key_for(*identity),
            )
            return None
        return envelope

    def needs_refresh(self, envelope: dict[str, Any] | None, now: datetime | None = None) -> bool:
        """True when the envelope is absent, undated, or older than the staleness window."""
        stamp = envelope_timestamp(envelope)
        if stamp is None:
            return True
        now = now or utcnow()
        return (now - stamp).total_seconds() > self._staleness_seconds

    async def get_or_fetch(self, *identity: Any) -> Any | None:
        """
        Return the user's data, refetching upstream when absent or stale.

        Raises:
            UpstreamFetchError: The upstream fetch failed and there was no
                stored copy to fall back on
        """
        key = self.key_for(*identity)
        envelope = await self.get_cached(*identity)
        if envelope is not None and not self.needs_refresh(envelope):
            logger.debug("Fresh record served", stage=Stage.ACCESSOR, platform=self.platform, cache_key=key)
            return envelope["data"]

        stale = envelope["data"] if envelope is not None else None
        logger.info(
            "Fetching from upstream",
            stage=Stage.ACCESSOR,
            platform=self.platform,
            cache_key=key,
            reason="stale" if envelope is not None else "absent",
        )

        try:
            fresh = await retry_with_fallback(
                self._fetcher,
                *identity,
                fallback=(lambda: _STALE) if envelope is not None else None,
                max_attempts=self._retry_attempts,
                base_delay=self._retry_base_delay,
                description=f"fetch {self.platform}",
            )
        except Exception as e:
            if envelope is not None:
                logger.warning(
                    "Upstream fetch failed, serving stale record",
                    stage=Stage.ACCESSOR,
                    platform=self.platform,
                    cache_key=key,
                    error=describe_error(e),
                )
                return stale
            raise UpstreamFetchError.from_exception(e, platform=self.platform, cache_key=key) from e

        if fresh is _STALE:
            return stale
        if fresh is None:
            return stale

        await self.update(*identity, data=fresh)
        return fresh

    async def update(self, *identity: Any, data: Any) -> bool:
        """
        Persist fresh data.

        With a background queue the write is queued and this returns whether
        it was accepted; otherwise it is awaited and failures are logged.
        """
        key = self.key_for(*identity)
        envelope = wrap_envelope(data)
        if self._queue is not None:
            return persist_in_background(
                self._queue, self._persist, key, envelope, description=f"persist {key}"
            )
        try:
            await self._persist(key, envelope)
            return True
        except Exception as e:
            logger.error(
                "Persisting fetched record failed",
                stage=Stage.ACCESSOR,
                platform=self.platform,
                cache_key=key,
                error=describe_error(e),
            )
            return False

    async def _persist(self, key: str, envelope: dict[str, Any]) -> None:
        if not await self._storage.set(key, envelope, self._record_ttl):
            # Retryable, so the background worker backs off and tries again
            raise StorageConnectionError(f"No storage tier accepted '{key}'", details={"key": key})

    async def invalidate(self, *identity: Any) -> bool:
        return await self._storage.delete(self.key_for(*identity))
