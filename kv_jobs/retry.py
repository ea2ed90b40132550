"""Retry backoff calculation."""

from typing import Any


def calculate_backoff(backoff_policy: dict[str, Any], attempt: int) -> int:
    """
    Calculate backoff delay based on policy and attempt number.

    Args:
        backoff_policy: Backoff policy configuration with ``type``
            (exponential, linear or constant), ``base_seconds`` and an
            optional ``max_seconds`` cap
        attempt: Attempt number that just failed (1-indexed)

    Returns:
        Backoff delay in seconds
    """
    policy_type = backoff_policy.get("type", "exponential")
    base_seconds = backoff_policy.get("base_seconds", 60)
    max_seconds = backoff_policy.get("max_seconds")
    attempt = max(attempt, 1)

    if policy_type == "linear":
        delay = base_seconds * attempt
    elif policy_type == "constant":
        delay = base_seconds
    else:
        # Exponential backoff: base * 2^(attempt-1)
        delay = base_seconds * (2 ** (attempt - 1))

    if max_seconds is not None:
        delay = min(delay, max_seconds)
    return int(delay)


def should_retry(attempts: int, max_retries: int) -> bool:
    """A job that has run ``attempts`` times may run again while retries remain."""
    return attempts <= max_retries
