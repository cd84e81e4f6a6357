"""Retry backoff for failed deliveries."""

from datetime import timedelta

DEFAULT_BASE_DELAY = timedelta(minutes=5)


def compute_next_attempt(
    attempts: int, base_delay: timedelta = DEFAULT_BASE_DELAY
) -> timedelta:
    """Delay before the next delivery attempt.

    ``attempts`` is the number of attempts made before the one that just
    failed, so the first failure waits ``base_delay``, the second twice that,
    and so on (5, 10, 20 minutes with the default base).

    Args:
        attempts: Attempts recorded before the failed attempt (>= 0)
        base_delay: Delay after the first failure

    Returns:
        timedelta to add to the time of the failed attempt
    """
    if attempts < 0:
        raise ValueError(f"attempts must be >= 0, got {attempts}")
    return base_delay * (2**attempts)
