from .key_scheme import CacheKeyGenerator, KeyScheme, sanitize_key_part
from .records import (
    CacheEntry,
    CacheStats,
    PersistentRecord,
    compute_expire_at,
    utcnow,
    validate_record_input,
)

__all__ = [
    "CacheEntry",
    "CacheKeyGenerator",
    "CacheStats",
    "KeyScheme",
    "PersistentRecord",
    "compute_expire_at",
    "sanitize_key_part",
    "utcnow",
    "validate_record_input",
]
