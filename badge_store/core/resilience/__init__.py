from .background import BackgroundPersistenceQueue, persist_in_background
from .backoff import backoff_schedule, compute_backoff_delay
from .failures import describe_error, is_retryable
from .retry import create_retry_decorator, retry_with_fallback

__all__ = [
    "BackgroundPersistenceQueue",
    "backoff_schedule",
    "compute_backoff_delay",
    "create_retry_decorator",
    "describe_error",
    "is_retryable",
    "persist_in_background",
    "retry_with_fallback",
]
