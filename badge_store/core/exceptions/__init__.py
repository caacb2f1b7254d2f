"""
Exception Module

Structured exception hierarchy for the badge storage layer.

Module Structure:
-----------------
- **base.py**: BadgeStoreError base class + ConfigurationError
- **cache.py**: Cache-related exceptions (Redis, memory)
- **storage.py**: Persistent store exceptions (relational, document)
- **validation.py**: Input validation and upstream fetch errors

Usage:
------
```python
from badge_store.core.exceptions import CacheConnectionError, StorageConnectionError
```

Author: System Architect
Date: 2026-01-12
"""

from badge_store.core.exceptions.base import BadgeStoreError, ConfigurationError
from badge_store.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
)
from badge_store.core.exceptions.storage import (
    ConstraintViolationError,
    RecordValidationError,
    StorageConnectionError,
    StorageError,
    StorageOperationError,
)
from badge_store.core.exceptions.validation import (
    InvalidKeyError,
    UpstreamFetchError,
    ValidationError,
)

__all__ = [
    "BadgeStoreError",
    "CacheConnectionError",
    "CacheError",
    "CacheKeyError",
    "CacheSerializationError",
    "ConfigurationError",
    "ConstraintViolationError",
    "InvalidKeyError",
    "RecordValidationError",
    "StorageConnectionError",
    "StorageError",
    "StorageOperationError",
    "UpstreamFetchError",
    "ValidationError",
]
