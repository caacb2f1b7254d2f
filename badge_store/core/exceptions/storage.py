"""
Persistent Storage Exceptions

Exceptions raised by the relational and document record stores.

Author: System Architect
Date: 2026-01-12
"""

from badge_store.core.exceptions.base import BadgeStoreError


class StorageError(BadgeStoreError):
    """Base exception for persistent storage errors."""
    pass


class StorageConnectionError(StorageError):
    """
    Raised when a persistent backend is unreachable.

    Retryable: drives the reconnect/backoff policy.
    """
    pass


class StorageOperationError(StorageError):
    """Raised when a statement or command fails for a non-connectivity reason."""
    pass


class RecordValidationError(StorageError):
    """
    Raised when a record is malformed (bad key, unserializable value).

    Non-retryable: the input is wrong, not the backend.
    """
    pass


class ConstraintViolationError(StorageError):
    """
    Raised on a unique-key violation outside of the upsert path.

    Non-retryable.
    """
    pass
