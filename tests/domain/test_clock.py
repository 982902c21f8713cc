"""Tests for the injectable clocks."""

from datetime import datetime, timedelta, timezone

import pytest

from quote_kernel.domain.clock import EPOCH, DeterministicClock, SystemClock


def test_system_clock_is_aware_utc():
    assert SystemClock().now().utcoffset() == timedelta(0)


class TestDeterministicClock:

    def test_stands_still(self):
        clock = DeterministicClock()
        assert clock.now() == clock.now() == EPOCH

    def test_advance_days(self):
        clock = DeterministicClock()
        clock.advance_days(31)
        assert clock.now() == datetime(2024, 2, 1, 12, 0, tzinfo=timezone.utc)

    def test_start_normalized_to_utc(self):
        mexico_city = timezone(timedelta(hours=-6))
        clock = DeterministicClock(datetime(2024, 3, 1, 18, 0, tzinfo=mexico_city))
        assert clock.now() == datetime(2024, 3, 2, 0, 0, tzinfo=timezone.utc)
        assert clock.now().tzinfo == timezone.utc

    def test_naive_start_rejected(self):
        with pytest.raises(ValueError):
            DeterministicClock(datetime(2024, 1, 1))

    def test_never_runs_backwards(self):
        with pytest.raises(ValueError):
            DeterministicClock().advance(timedelta(seconds=-1))
