"""Loan lifecycle rules: borrow duration bounds, due time and status derivation"""

from datetime import datetime
from typing import Optional

from sports_lending.domain.models import LoanState, LOAN_ACTIVE, LOAN_OVERDUE, LOAN_RETURNED
from sports_lending.utils.date_utils import add_minutes, ensure_utc

MIN_LOAN_MINUTES = 5
MAX_LOAN_MINUTES = 480


def clamp_duration(
    minutes: int,
    min_minutes: int = MIN_LOAN_MINUTES,
    max_minutes: int = MAX_LOAN_MINUTES,
) -> int:
    """
    Clamp a requested borrow duration into the allowed window.

    Example:
        clamp_duration(2)   -> 5
        clamp_duration(60)  -> 60
        clamp_duration(600) -> 480
    """
    return max(min_minutes, min(int(minutes), max_minutes))


def compute_due_at(borrowed_at: datetime, minutes: int) -> datetime:
    return add_minutes(ensure_utc(borrowed_at), minutes)


def derive_loan_state(due_at: datetime, returned_at: Optional[datetime], now: datetime) -> LoanState:
    """
    Derive overdue flag and status from the loan's times.

    The persisted ``is_overdue``/``status`` columns are a cache of this function;
    decisions always re-derive first.

    - returned_at set            -> returned, not overdue
    - open and due_at < now      -> overdue
    - open and due_at >= now     -> active
    """
    if returned_at is not None:
        return LoanState(is_overdue=False, status=LOAN_RETURNED)

    if ensure_utc(due_at) < ensure_utc(now):
        return LoanState(is_overdue=True, status=LOAN_OVERDUE)

    return LoanState(is_overdue=False, status=LOAN_ACTIVE)
