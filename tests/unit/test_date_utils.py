"""Unit tests for date helpers and the fixed clock"""

from datetime import datetime, timedelta, timezone

from sports_lending.utils.date_utils import FixedClock, ensure_utc, subtract_months


def test_ensure_utc_naive_and_aware():
    naive = datetime(2025, 3, 3, 9, 0)
    assert ensure_utc(naive) == datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

    plus_two = datetime(2025, 3, 3, 11, 0, tzinfo=timezone(timedelta(hours=2)))
    assert ensure_utc(plus_two) == datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

    assert ensure_utc(None) is None


def test_subtract_months_clamps_day():
    assert subtract_months(datetime(2025, 3, 31, tzinfo=timezone.utc), 1) == datetime(2025, 2, 28, tzinfo=timezone.utc)
    assert subtract_months(datetime(2024, 3, 31, tzinfo=timezone.utc), 1) == datetime(2024, 2, 29, tzinfo=timezone.utc)


def test_subtract_months_crosses_year():
    assert subtract_months(datetime(2025, 2, 15, tzinfo=timezone.utc), 12) == datetime(2024, 2, 15, tzinfo=timezone.utc)
    assert subtract_months(datetime(2025, 1, 10, tzinfo=timezone.utc), 3) == datetime(2024, 10, 10, tzinfo=timezone.utc)


def test_fixed_clock_advances():
    clock = FixedClock(datetime(2025, 3, 3, 9, 0))
    assert clock.now().tzinfo is not None
    clock.advance(minutes=90)
    assert clock.now() == datetime(2025, 3, 3, 10, 30, tzinfo=timezone.utc)
