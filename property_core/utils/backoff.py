"""Exponential backoff used to schedule notification retries."""

import random
from datetime import datetime, timedelta
from typing import Optional


def calculate_exponential_backoff(
    retry_count: int,
    base_delay: float = 1,
    max_delay: float = 1440,
    multiplier: float = 5.0,
    jitter: bool = False,
) -> float:
    """
    Calculate an exponential backoff delay.

    The unit is whatever ``base_delay`` and ``max_delay`` are expressed in;
    notification retries use minutes.

    Args:
        retry_count: Retry attempt being scheduled (0-based)
        base_delay: Delay for the first retry
        max_delay: Upper bound on the delay
        multiplier: Growth factor per attempt
        jitter: Add +/-25% randomization to spread simultaneous retries

    Example (base_delay=1, multiplier=5):
        retry_count=0: 1
        retry_count=1: 5
        retry_count=2: 25
    """
    if retry_count < 0:
        return base_delay

    delay = min(base_delay * (multiplier**retry_count), max_delay)

    if jitter:
        jitter_range = delay * 0.25
        delay = delay + random.uniform(-jitter_range, jitter_range)

    # Never drop below the base delay so the progression stays monotonic
    return max(delay, base_delay)


def next_retry_time(
    failure_count: int,
    now: datetime,
    base_minutes: float,
    multiplier: float,
    max_minutes: float,
) -> Optional[datetime]:
    """
    When the next attempt should run after ``failure_count`` failures.

    The first failure maps to retry index 0, so it waits ``base_minutes``.
    Returns None when ``failure_count`` is not positive.
    """
    if failure_count <= 0:
        return None
    minutes = calculate_exponential_backoff(
        failure_count - 1,
        base_delay=base_minutes,
        max_delay=max_minutes,
        multiplier=multiplier,
    )
    return now + timedelta(minutes=minutes)
