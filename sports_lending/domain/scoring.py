"""Trust scoring engine - on-time return ratio, suspension penalty and score bands"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable

from sports_lending.utils.date_utils import ensure_utc

DEFAULT_TRUST_SCORE = 50.0
SUSPENSION_PENALTY_FACTOR = 0.5
MIN_TRUST_SCORE = 0.0
MAX_TRUST_SCORE = 100.0


def is_returned(loan) -> bool:
    return loan.returned_at is not None


def is_late_return(loan) -> bool:
    """A returned loan is late when it came back strictly after its due time"""
    if loan.returned_at is None:
        return False
    return ensure_utc(loan.returned_at) > ensure_utc(loan.due_at)


def _round_one_decimal(value: float) -> float:
    # Half-up: 6.25 -> 6.3
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def calculate_trust_score(loans: Iterable, default: float = DEFAULT_TRUST_SCORE) -> float:
    """
    Calculate a trust score from 0.0 (never on time) to 100.0 (always on time).

    Only returned loans count. Open loans, overdue or not, contribute nothing to
    the ratio until they come back. A student with no returned loans gets the
    neutral default so new students are neither rewarded nor penalised.

    Accepts any objects exposing ``due_at`` and ``returned_at``.
    """
    returned = [loan for loan in loans if is_returned(loan)]
    if not returned:
        return default

    on_time = sum(1 for loan in returned if not is_late_return(loan))
    score = 100 * on_time / len(returned)

    return _round_one_decimal(score)


def apply_suspension_penalty(score: float, factor: float = SUSPENSION_PENALTY_FACTOR) -> float:
    """Halve the score on suspension, never dropping below zero"""
    return min(max(MIN_TRUST_SCORE, score * factor), MAX_TRUST_SCORE)


def determine_trust_band(score: float) -> str:
    """
    Map a trust score to the band shown next to the student.

    - 80+:     good
    - 50 - 80: fair
    - < 50:    poor
    """
    if score >= 80:
        return "good"
    elif score >= 50:
        return "fair"
    else:
        return "poor"
