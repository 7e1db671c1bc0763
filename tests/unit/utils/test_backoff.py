"""Tests for exponential backoff calculation."""

from datetime import UTC, datetime, timedelta

import pytest

from property_core.utils.backoff import calculate_exponential_backoff, next_retry_time


class TestCalculateExponentialBackoff:
    @pytest.mark.parametrize(
        "retry_count,expected",
        [(0, 1), (1, 5), (2, 25), (3, 125), (4, 625), (5, 1440), (9, 1440)],
    )
    def test_progression(self, retry_count, expected):
        assert calculate_exponential_backoff(retry_count) == expected

    def test_negative_count_uses_base(self):
        assert calculate_exponential_backoff(-1, base_delay=2) == 2

    def test_jitter_stays_within_a_quarter(self):
        for _ in range(50):
            delay = calculate_exponential_backoff(2, jitter=True)
            assert 18.75 <= delay <= 31.25

    def test_jitter_never_below_base(self):
        for _ in range(50):
            assert calculate_exponential_backoff(0, base_delay=4, jitter=True) >= 4


class TestNextRetryTime:
    NOW = datetime(2026, 3, 18, 9, 0, tzinfo=UTC)

    def test_first_failure_waits_base(self):
        result = next_retry_time(1, self.NOW, base_minutes=1, multiplier=5, max_minutes=1440)

        assert result == self.NOW + timedelta(minutes=1)

    def test_third_failure(self):
        result = next_retry_time(3, self.NOW, base_minutes=1, multiplier=5, max_minutes=1440)

        assert result == self.NOW + timedelta(minutes=25)

    def test_capped(self):
        result = next_retry_time(10, self.NOW, base_minutes=1, multiplier=5, max_minutes=60)

        assert result == self.NOW + timedelta(hours=1)

    @pytest.mark.parametrize("failures", [0, -2])
    def test_no_failures(self, failures):
        assert next_retry_time(failures, self.NOW, 1, 5, 1440) is None
