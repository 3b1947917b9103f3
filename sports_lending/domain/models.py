"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

# Loan status values
LOAN_ACTIVE = "active"
LOAN_OVERDUE = "overdue"
LOAN_RETURNED = "returned"

# Equipment status values
EQUIPMENT_AVAILABLE = "available"
EQUIPMENT_BORROWED = "borrowed"
EQUIPMENT_STATUSES = ("available", "borrowed", "reserved", "repair", "lost", "damaged")

# Event types published when a student's standing changes
TRUST_SCORE_CHANGED = "TRUST_SCORE_CHANGED"
STUDENT_SUSPENDED = "STUDENT_SUSPENDED"
SUSPENSION_UPDATED = "SUSPENSION_UPDATED"
STUDENT_UNSUSPENDED = "STUDENT_UNSUSPENDED"


@dataclass
class LoanState:
    """Derived overdue flag and status of a loan at a point in time"""

    is_overdue: bool
    status: str  # "active", "overdue" or "returned"


@dataclass
class LateReturnStats:
    """Late-return history used by the at-risk escalation rule"""

    total_late_returns: int
    late_returns_since_last_suspension: int
    total_suspensions: int
    last_suspension_end: Optional[datetime]
    warning_threshold: int

    @property
    def is_at_risk(self) -> bool:
        return self.late_returns_since_last_suspension >= self.warning_threshold


@dataclass
class AtRiskStudent:
    """Student flagged for a manual warning"""

    student_id: str
    school_student_id: str
    full_name: str
    trust_score: float
    is_blacklisted: bool
    stats: LateReturnStats


@dataclass
class SuspensionState:
    """Current suspension standing of a student"""

    student_id: str
    is_blacklisted: bool
    end_date: Optional[datetime]
    reason: Optional[str]


@dataclass
class StudentSummary:
    """Profile card figures for one student"""

    student_id: str
    total_loans: int
    active_loans: int
    overdue_count: int
    trust_score: float
    trust_band: str
    is_blacklisted: bool


@dataclass
class StudentEvent:
    """Change in a student's trust score or suspension state"""

    event: str
    student_id: str
    occurred_at: datetime
    details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "event": self.event,
            "student_id": self.student_id,
            "occurred_at": self.occurred_at.isoformat(),
            **self.details,
        }
