from .cache import CacheService
from .storage import RecordStore

__all__ = ["CacheService", "RecordStore"]
