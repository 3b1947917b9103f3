"""Trust score persistence and student standing queries"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from sports_lending.config import Settings, settings as default_settings
from sports_lending.domain.exceptions import NotFoundError
from sports_lending.domain.lifecycle import derive_loan_state
from sports_lending.domain.models import StudentEvent, StudentSummary, TRUST_SCORE_CHANGED, LOAN_OVERDUE
from sports_lending.domain.scoring import calculate_trust_score, determine_trust_band, is_late_return
from sports_lending.infrastructure.database.models import Student
from sports_lending.infrastructure.database.repositories import StudentRepository, LoanRepository
from sports_lending.utils.date_utils import Clock

logger = logging.getLogger(__name__)


class TrustScoreService:
    """Computes trust scores from loan history and writes them back to the student"""

    def __init__(self, db: Session, clock: Optional[Clock] = None, config: Settings = default_settings):
        self.db = db
        self.clock = clock or Clock()
        self.config = config
        self.students = StudentRepository(db)
        self.loans = LoanRepository(db)

    def _get_student(self, student_id: str) -> Student:
        student = self.students.get(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def compute(self, student_id: str) -> float:
        """Score from returned loans only; no side effects"""
        self._get_student(student_id)
        returned = self.loans.list_returned_for_student(student_id)
        return calculate_trust_score(returned, default=self.config.default_trust_score)

    def refresh(self, student: Student, now: datetime, events: List[StudentEvent]) -> float:
        """
        Recompute and store a student's score inside the caller's transaction.

        Appends a TRUST_SCORE_CHANGED event only when the stored value moves.
        """
        old_score = student.trust_score
        new_score = calculate_trust_score(
            self.loans.list_returned_for_student(student.id),
            default=self.config.default_trust_score,
        )
        if new_score != old_score:
            self.students.set_trust_score(student, new_score, now)
            events.append(
                StudentEvent(
                    event=TRUST_SCORE_CHANGED,
                    student_id=student.id,
                    occurred_at=now,
                    details={"old_score": old_score, "new_score": new_score},
                )
            )
            logger.info(
                "Trust score updated",
                extra={"student_id": student.id, "old_score": old_score, "new_score": new_score},
            )
        return new_score

    def current_score(self, student_id: str) -> float:
        """Stored score, including any suspension penalty"""
        return self._get_student(student_id).trust_score

    def summarize(self, student_id: str) -> StudentSummary:
        """
        Profile card figures.

        active_loans counts open loans still within their due time; overdue_count
        counts late returns plus open loans that are overdue right now.
        """
        student = self._get_student(student_id)
        now = self.clock.now()
        loans = self.loans.list_for_student(student_id)

        active = 0
        overdue = 0
        for loan in loans:
            if loan.returned_at is not None:
                if is_late_return(loan):
                    overdue += 1
                continue
            if derive_loan_state(loan.due_at, loan.returned_at, now).status == LOAN_OVERDUE:
                overdue += 1
            else:
                active += 1

        return StudentSummary(
            student_id=student.id,
            total_loans=len(loans),
            active_loans=active,
            overdue_count=overdue,
            trust_score=student.trust_score,
            trust_band=determine_trust_band(student.trust_score),
            is_blacklisted=student.is_blacklisted,
        )
