"""At-risk escalation rule - repeat late returns since the last suspension"""

from typing import Collection, Iterable

from sports_lending.domain.models import LateReturnStats
from sports_lending.domain.scoring import is_late_return
from sports_lending.utils.date_utils import EPOCH, ensure_utc

FIRST_OFFENCE_THRESHOLD = 3
REPEAT_OFFENCE_THRESHOLD = 1


def analyze_late_returns(
    loans: Iterable,
    blacklist_entries: Iterable,
    first_offence_threshold: int = FIRST_OFFENCE_THRESHOLD,
    repeat_offence_threshold: int = REPEAT_OFFENCE_THRESHOLD,
) -> LateReturnStats:
    """
    Count a student's late returns and pick the warning threshold.

    Requirements:
    - Late return: returned_at > due_at
    - Window starts at the end date of the most recent closed suspension,
      or the epoch if the student was never suspended
    - Students with any suspension on record (active or closed) are repeat
      offenders and are flagged after a single late return; others get three
    """
    late_returns = [loan for loan in loans if is_late_return(loan)]
    entries = list(blacklist_entries)

    closed_end_dates = [ensure_utc(e.end_date) for e in entries if not e.is_active]
    last_suspension_end = max(closed_end_dates) if closed_end_dates else None
    window_start = last_suspension_end or EPOCH

    late_since = sum(1 for loan in late_returns if ensure_utc(loan.returned_at) > window_start)

    total_suspensions = len(entries)
    threshold = repeat_offence_threshold if total_suspensions > 0 else first_offence_threshold

    return LateReturnStats(
        total_late_returns=len(late_returns),
        late_returns_since_last_suspension=late_since,
        total_suspensions=total_suspensions,
        last_suspension_end=last_suspension_end,
        warning_threshold=threshold,
    )


def should_warn(stats: LateReturnStats, dismissed_counts: Collection[int]) -> bool:
    """
    A flagged student is surfaced unless the warning was dismissed at exactly
    the current late-return count. A new late return changes the count and
    brings the warning back.
    """
    return stats.is_at_risk and stats.late_returns_since_last_suspension not in dismissed_counts
