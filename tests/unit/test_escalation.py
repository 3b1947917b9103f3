"""Unit tests for the at-risk escalation rule"""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

from sports_lending.domain.escalation import analyze_late_returns, should_warn

BASE = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def late_loan(day: int):
    due = BASE + timedelta(days=day)
    return SimpleNamespace(due_at=due, returned_at=due + timedelta(minutes=30))


def on_time_loan(day: int):
    due = BASE + timedelta(days=day)
    return SimpleNamespace(due_at=due, returned_at=due - timedelta(minutes=5))


def entry(end_day: int, is_active: bool = False):
    return SimpleNamespace(end_date=BASE + timedelta(days=end_day), is_active=is_active)


def test_first_offender_two_late_returns_not_flagged():
    stats = analyze_late_returns([late_loan(1), late_loan(2), on_time_loan(3)], [])

    assert stats.total_late_returns == 2
    assert stats.late_returns_since_last_suspension == 2
    assert stats.total_suspensions == 0
    assert stats.warning_threshold == 3
    assert stats.last_suspension_end is None
    assert stats.is_at_risk is False


def test_first_offender_third_late_return_flags():
    stats = analyze_late_returns([late_loan(1), late_loan(2), late_loan(3)], [])
    assert stats.is_at_risk is True


def test_repeat_offender_one_late_return_since_suspension_flags():
    loans = [late_loan(1), late_loan(2), late_loan(20)]
    stats = analyze_late_returns(loans, [entry(end_day=10)])

    assert stats.total_late_returns == 3
    assert stats.late_returns_since_last_suspension == 1
    assert stats.total_suspensions == 1
    assert stats.warning_threshold == 1
    assert stats.is_at_risk is True


def test_repeat_offender_with_nothing_since_suspension_not_flagged():
    stats = analyze_late_returns([late_loan(1), late_loan(2)], [entry(end_day=10)])
    assert stats.late_returns_since_last_suspension == 0
    assert stats.is_at_risk is False


def test_window_starts_at_most_recent_closed_suspension():
    loans = [late_loan(5), late_loan(15), late_loan(25)]
    stats = analyze_late_returns(loans, [entry(end_day=10), entry(end_day=20)])

    assert stats.last_suspension_end == BASE + timedelta(days=20)
    assert stats.late_returns_since_last_suspension == 1
    assert stats.total_suspensions == 2


def test_active_suspension_counts_as_history_but_not_as_window():
    """A current suspension raises the bar to one strike but the window is still 'since ever'"""
    stats = analyze_late_returns([late_loan(1), late_loan(2)], [entry(end_day=30, is_active=True)])

    assert stats.total_suspensions == 1
    assert stats.warning_threshold == 1
    assert stats.late_returns_since_last_suspension == 2


def test_custom_thresholds():
    stats = analyze_late_returns(
        [late_loan(1)], [], first_offence_threshold=1, repeat_offence_threshold=1
    )
    assert stats.is_at_risk is True


def test_dismissal_is_keyed_by_count():
    stats_at_3 = analyze_late_returns([late_loan(d) for d in (1, 2, 3)], [])
    stats_at_4 = analyze_late_returns([late_loan(d) for d in (1, 2, 3, 4)], [])

    assert should_warn(stats_at_3, set()) is True
    assert should_warn(stats_at_3, {3}) is False
    # A new late return after dismissal brings the warning back
    assert should_warn(stats_at_4, {3}) is True


def test_not_at_risk_never_warns():
    stats = analyze_late_returns([late_loan(1)], [])
    assert should_warn(stats, set()) is False
