"""At-risk escalation evaluator - repeat late returners awaiting a manual warning"""

import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from sports_lending.config import Settings, settings as default_settings
from sports_lending.domain.escalation import analyze_late_returns, should_warn
from sports_lending.domain.exceptions import NotFoundError
from sports_lending.domain.models import AtRiskStudent, LateReturnStats, StudentEvent
from sports_lending.infrastructure.database.models import DismissedNotification, Student
from sports_lending.infrastructure.database.repositories import (
    StudentRepository,
    LoanRepository,
    BlacklistRepository,
    DismissalRepository,
)
from sports_lending.infrastructure.database.session import transaction
from sports_lending.infrastructure.observability.metrics import at_risk_gauge
from sports_lending.services.events import EventPublisher
from sports_lending.services.loans import LoanManager
from sports_lending.utils.date_utils import Clock

logger = logging.getLogger(__name__)


class AtRiskEvaluator:
    """
    Scans students for late returns since their last suspension.

    Reads only, apart from the two reconciliation passes it runs first so the
    counts are accurate: lapsed suspensions are expired and open loans have
    their overdue status re-derived.
    """

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        publisher: Optional[EventPublisher] = None,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.config = config
        self.loan_manager = LoanManager(db, self.clock, publisher, config)
        self.suspensions = self.loan_manager.suspensions
        self.students = StudentRepository(db)
        self.loans = LoanRepository(db)
        self.entries = BlacklistRepository(db)
        self.dismissals = DismissalRepository(db)

    def _stats_for(self, student: Student) -> LateReturnStats:
        return analyze_late_returns(
            self.loans.list_returned_for_student(student.id),
            self.entries.list_for_student(student.id),
            first_offence_threshold=self.config.first_offence_warning_threshold,
            repeat_offence_threshold=self.config.repeat_offence_warning_threshold,
        )

    def evaluate(self) -> List[AtRiskStudent]:
        """Every student whose warning is due and has not been dismissed at the current count"""
        now = self.clock.now()
        events: List[StudentEvent] = []
        flagged: List[AtRiskStudent] = []

        with transaction(self.db):
            self.suspensions.expire_lapsed(now, events)
            self.loan_manager.refresh_open_loans(now)

            for student in self.students.list_all():
                stats = self._stats_for(student)
                if not should_warn(stats, self.dismissals.dismissed_counts(student.id)):
                    continue
                flagged.append(
                    AtRiskStudent(
                        student_id=student.id,
                        school_student_id=student.student_id,
                        full_name=student.full_name,
                        trust_score=student.trust_score,
                        is_blacklisted=student.is_blacklisted,
                        stats=stats,
                    )
                )

        at_risk_gauge.set(len(flagged))
        logger.info("At-risk evaluation completed", extra={"step": "at_risk_evaluated", "flagged": len(flagged)})
        self.suspensions.finish(events)
        return flagged

    def student_stats(self, student_id: str) -> LateReturnStats:
        with transaction(self.db):
            student = self.students.get(student_id)
            if student is None:
                raise NotFoundError("Student", student_id)
            return self._stats_for(student)

    def dismiss(
        self,
        student_id: str,
        late_return_count: Optional[int] = None,
        dismissed_by_user_id: Optional[str] = None,
    ) -> DismissedNotification:
        """
        Dismiss a student's warning at a late-return count (the current one by default).

        The warning comes back once the count moves past the dismissed value.
        """
        now = self.clock.now()
        events: List[StudentEvent] = []
        with transaction(self.db):
            student = self.students.get(student_id)
            if student is None:
                raise NotFoundError("Student", student_id)
            if late_return_count is None:
                self.suspensions.expire_lapsed(now, events)
                late_return_count = self._stats_for(student).late_returns_since_last_suspension
            dismissal = self.dismissals.dismiss(student.id, late_return_count, now, dismissed_by_user_id)

        self.suspensions.finish(events)
        logger.info(
            "At-risk warning dismissed",
            extra={"student_id": student_id, "late_return_count": late_return_count},
        )
        return dismissal
