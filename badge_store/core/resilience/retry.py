"""
Retry Helpers (Tenacity)

Retries an async operation on retryable failures only, sleeping
``min(base * 2^attempt, cap)`` between attempts. Non-retryable failures
propagate on the first attempt without consuming the retry budget.

On final failure:
- with a fallback: the fallback's value is returned and the exhaustion is
  only logged
- without one: the last underlying error propagates

Author: System Architect
Date: 2026-01-12
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from badge_store.core.config.constants import Stage
from badge_store.core.config.settings import get_settings
from badge_store.core.logging.logger import get_logger
from badge_store.core.resilience.failures import describe_error, is_retryable

logger = get_logger(__name__)

T = TypeVar("T")


def _log_before_sleep(description: str) -> Callable[[RetryCallState], None]:
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying after retryable failure",
            stage=Stage.RETRY,
            operation=description,
            attempt=retry_state.attempt_number,
            delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
            error=describe_error(error) if error else None,
        )

    return before_sleep


def _resolve(max_attempts, base_delay, max_delay) -> tuple[int, float, float]:
    resilience = get_settings().resilience
    return (
        max_attempts if max_attempts is not None else resilience.RETRY_MAX_ATTEMPTS,
        base_delay if base_delay is not None else resilience.RETRY_BASE_DELAY,
        max_delay if max_delay is not None else resilience.RETRY_MAX_DELAY,
    )


def create_retry_decorator(
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    description: str = "operation",
):
    """
    Decorator form for async functions.

    Usage:
        @create_retry_decorator(max_attempts=3)
        async def fetch_profile(username): ...
    """
    max_attempts, base_delay, max_delay = _resolve(max_attempts, base_delay, max_delay)
    return retry(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_before_sleep(description),
        reraise=True,
    )


async def retry_with_fallback(
    operation: Callable[..., Awaitable[T]],
    *args: Any,
    fallback: Callable[[], T] | None = None,
    max_attempts: int | None = None,
    base_delay: float | None = None,
    max_delay: float | None = None,
    description: str = "operation",
    **kwargs: Any,
) -> T:
    """
    Run ``operation(*args, **kwargs)`` with retries and an optional fallback.

    Args:
        operation: Async callable to run
        fallback: Synchronous producer used once retries are exhausted
        max_attempts: Total attempts (defaults to RETRY_MAX_ATTEMPTS)
        base_delay: Backoff base in seconds (defaults to RETRY_BASE_DELAY)
        max_delay: Backoff cap in seconds (defaults to RETRY_MAX_DELAY)
        description: Operation name for logs

    Raises:
        Any non-retryable error immediately; the last retryable error when
        attempts run out and no fallback was given.
    """
    max_attempts, base_delay, max_delay = _resolve(max_attempts, base_delay, max_delay)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_exponential(multiplier=base_delay, max=max_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_before_sleep(description),
        reraise=True,
    )

    try:
        return await retrying(operation, *args, **kwargs)
    except Exception as exc:
        if fallback is None or not is_retryable(exc):
            raise
        logger.error(
            "Retries exhausted, using fallback",
            stage=Stage.RETRY,
            operation=description,
            attempts=max_attempts,
            error=describe_error(exc),
        )
        return fallback()
