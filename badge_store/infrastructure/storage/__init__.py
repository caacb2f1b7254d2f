from .mongo_store import MongoRecordStore
from .sql_store import Base, KeyValueRow, SqlRecordStore
from .storage_service import StorageService
from .strategies import (
    BackendFailure,
    CacheOnlyStrategy,
    HybridStrategy,
    PersistentOnlyStrategy,
    StorageStrategyHandler,
    StorageTiers,
    TierAvailability,
    build_strategy,
)

__all__ = [
    "BackendFailure",
    "Base",
    "CacheOnlyStrategy",
    "HybridStrategy",
    "KeyValueRow",
    "MongoRecordStore",
    "PersistentOnlyStrategy",
    "SqlRecordStore",
    "StorageService",
    "StorageStrategyHandler",
    "StorageTiers",
    "TierAvailability",
    "build_strategy",
]
