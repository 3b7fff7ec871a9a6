"""Retry backoff calculation."""

import random
from typing import Optional

from modules.reconciliation.config import ReconciliationConfig


def calculate_retry_delay(
    attempt: int,
    config: ReconciliationConfig,
    rng: Optional[random.Random] = None,
) -> int:
    """Calculate the exponential backoff delay in milliseconds.

    Uses the formula: base_delay * multiplier ^ (attempt - 1)
    Capped at retry_max_delay_ms. Attempt 0 (first execution) has no delay.

    With jitter enabled, a random amount in [0, ratio * delay] is added and
    the result is capped again. Pass a seeded ``random.Random`` for
    reproducible delays.

    Args:
        attempt: Number of failures so far, including the current one
        config: Engine configuration
        rng: Optional random source used for jitter

    Returns:
        Delay in milliseconds before the next attempt
    """
    if attempt <= 0:
        return 0

    try:
        delay = config.retry_base_delay_ms * config.retry_multiplier ** (attempt - 1)
    except OverflowError:
        delay = config.retry_max_delay_ms
    delay = min(delay, config.retry_max_delay_ms)

    if config.retry_jitter_ratio > 0:
        source = rng or random
        delay += source.uniform(0, config.retry_jitter_ratio * delay)
        delay = min(delay, config.retry_max_delay_ms)

    return int(delay)
