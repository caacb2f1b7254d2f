"""
Exponential backoff arithmetic shared by reconnection and retries.
"""


def compute_backoff_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """
    Delay before retry number ``attempt`` (0-based).

    delay = min(base_delay * 2 ** attempt, max_delay)

    Example:
        >>> [compute_backoff_delay(n, 1.0, 30.0) for n in range(7)]
        [1.0, 2.0, 4.0, 8.0, 16.0, 30.0, 30.0]
    """
    if attempt < 0:
        raise ValueError("attempt must be >= 0")
    # Clamp the exponent so large attempt counts cannot overflow
    exponent = min(attempt, 62)
    return min(base_delay * (2 ** exponent), max_delay)


def backoff_schedule(attempts: int, base_delay: float, max_delay: float) -> list[float]:
    """Delays for ``attempts`` consecutive retries."""
    return [compute_backoff_delay(n, base_delay, max_delay) for n in range(attempts)]
