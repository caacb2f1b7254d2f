"""
Failure Classification

Splits backend failures into two classes:

- retryable: connection refused, timeouts, closed sockets, server
  selection failures. These drive backoff and reconnection.
- non-retryable: validation problems, unique-key violations,
  serialization errors. These propagate immediately.

Author: System Architect
Date: 2026-01-12
"""

import asyncio

from pymongo import errors as mongo_errors
from redis import exceptions as redis_errors
from sqlalchemy import exc as sa_errors

from badge_store.core.exceptions import (
    CacheConnectionError,
    CacheSerializationError,
    ConstraintViolationError,
    RecordValidationError,
    StorageConnectionError,
    ValidationError,
)

RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    ConnectionError,
    TimeoutError,
    asyncio.TimeoutError,
    OSError,
    CacheConnectionError,
    StorageConnectionError,
    redis_errors.ConnectionError,
    redis_errors.TimeoutError,
    redis_errors.BusyLoadingError,
    sa_errors.OperationalError,
    sa_errors.InterfaceError,
    sa_errors.DisconnectionError,
    sa_errors.TimeoutError,
    mongo_errors.AutoReconnect,
    mongo_errors.ConnectionFailure,
    mongo_errors.ServerSelectionTimeoutError,
    mongo_errors.NetworkTimeout,
)

# Checked first: a few of these subclass retryable driver errors.
NON_RETRYABLE_EXCEPTIONS: tuple[type[BaseException], ...] = (
    CacheSerializationError,
    RecordValidationError,
    ConstraintViolationError,
    ValidationError,
    sa_errors.IntegrityError,
    sa_errors.DataError,
    sa_errors.ProgrammingError,
    mongo_errors.DuplicateKeyError,
    mongo_errors.WriteError,
    redis_errors.ResponseError,
    redis_errors.AuthenticationError,
    ValueError,
    TypeError,
)


def is_retryable(exc: BaseException) -> bool:
    """
    Return True when ``exc`` is a transient connectivity failure.

    Example:
        >>> is_retryable(ConnectionRefusedError())
        True
        >>> is_retryable(ValueError("bad record"))
        False
    """
    if isinstance(exc, NON_RETRYABLE_EXCEPTIONS):
        return False
    return isinstance(exc, RETRYABLE_EXCEPTIONS)


def describe_error(exc: BaseException) -> str:
    """Short ``Type: message`` form used in logs and status payloads."""
    message = str(exc)
    return f"{type(exc).__name__}: {message}" if message else type(exc).__name__
