"""Unit tests for retry backoff calculation."""

import random

import pytest

from modules.reconciliation.backoff import calculate_retry_delay
from modules.reconciliation.config import ReconciliationConfig


@pytest.mark.unit
class TestCalculateRetryDelay:
    """Tests for calculate_retry_delay."""

    @pytest.mark.parametrize(
        "attempt,expected",
        [
            (1, 5000),
            (2, 25000),
            (3, 125000),
            (4, 625000),
            (5, 3125000),
            (6, 3600000),
            (7, 3600000),
        ],
    )
    def test_default_schedule(self, attempt, expected):
        """Delays grow by the multiplier and cap at one hour."""
        assert calculate_retry_delay(attempt, ReconciliationConfig()) == expected

    def test_first_attempt_has_no_delay(self):
        """Attempt 0 runs immediately."""
        assert calculate_retry_delay(0, ReconciliationConfig()) == 0

    def test_custom_base_and_multiplier(self):
        """Base delay and multiplier come from the config."""
        config = ReconciliationConfig(retry_base_delay_ms=1000, retry_multiplier=2.0)

        assert [calculate_retry_delay(n, config) for n in (1, 2, 3, 4)] == [
            1000,
            2000,
            4000,
            8000,
        ]

    def test_custom_cap(self):
        """retry_max_delay_ms caps every delay."""
        config = ReconciliationConfig(retry_max_delay_ms=30000)

        assert calculate_retry_delay(3, config) == 30000

    def test_very_large_attempt_is_capped(self):
        """Huge attempt counts do not overflow."""
        assert calculate_retry_delay(10_000, ReconciliationConfig()) == 3_600_000

    def test_jitter_is_bounded(self):
        """Jitter adds at most ratio * delay."""
        config = ReconciliationConfig(retry_jitter_ratio=0.2)
        rng = random.Random(42)

        delays = [calculate_retry_delay(2, config, rng) for _ in range(50)]

        assert all(25000 <= delay <= 30000 for delay in delays)
        assert len(set(delays)) > 1

    def test_jitter_is_reproducible_with_seeded_rng(self):
        """The same seed yields the same delays."""
        config = ReconciliationConfig(retry_jitter_ratio=0.5)

        first = [calculate_retry_delay(n, config, random.Random(7)) for n in (1, 2, 3)]
        second = [calculate_retry_delay(n, config, random.Random(7)) for n in (1, 2, 3)]

        assert first == second

    def test_jitter_never_exceeds_cap(self):
        """Jittered delays are capped again."""
        config = ReconciliationConfig(retry_jitter_ratio=0.9)

        assert calculate_retry_delay(6, config, random.Random(1)) == 3_600_000
