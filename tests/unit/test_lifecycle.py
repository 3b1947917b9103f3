"""Unit tests for loan duration and status derivation"""

from datetime import datetime, timedelta, timezone

from sports_lending.domain.lifecycle import clamp_duration, compute_due_at, derive_loan_state

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


def test_clamp_duration_bounds():
    assert clamp_duration(2) == 5
    assert clamp_duration(5) == 5
    assert clamp_duration(60) == 60
    assert clamp_duration(480) == 480
    assert clamp_duration(600) == 480


def test_clamp_duration_custom_window():
    assert clamp_duration(1, min_minutes=10, max_minutes=20) == 10
    assert clamp_duration(30, min_minutes=10, max_minutes=20) == 20


def test_compute_due_at():
    assert compute_due_at(T0, 60) == T0 + timedelta(minutes=60)


def test_open_loan_before_due_is_active():
    state = derive_loan_state(T0 + timedelta(minutes=60), None, T0 + timedelta(minutes=30))
    assert state.status == "active"
    assert state.is_overdue is False


def test_open_loan_past_due_is_overdue():
    """Borrowed at T0 for 60 minutes, checked at T0+90"""
    state = derive_loan_state(T0 + timedelta(minutes=60), None, T0 + timedelta(minutes=90))
    assert state.status == "overdue"
    assert state.is_overdue is True


def test_due_exactly_now_is_not_yet_overdue():
    due = T0 + timedelta(minutes=60)
    assert derive_loan_state(due, None, due).status == "active"


def test_returned_loan_stays_returned_even_when_late():
    due = T0 + timedelta(minutes=60)
    state = derive_loan_state(due, due + timedelta(hours=2), due + timedelta(days=3))
    assert state.status == "returned"
    assert state.is_overdue is False


def test_overdue_is_recomputed_not_sticky():
    """Pushing the due date out turns an overdue loan back to active"""
    now = T0 + timedelta(minutes=90)
    assert derive_loan_state(T0 + timedelta(minutes=60), None, now).status == "overdue"
    assert derive_loan_state(T0 + timedelta(minutes=120), None, now).status == "active"
