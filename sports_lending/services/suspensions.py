"""Suspension (blacklist) manager - suspend, unsuspend and lazy expiry"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.orm import Session

from sports_lending.config import Settings, settings as default_settings
from sports_lending.domain.exceptions import (
    ConcurrencyConflictError,
    InvalidSuspensionError,
    NotFoundError,
    StudentSuspendedError,
)
from sports_lending.domain.models import (
    StudentEvent,
    SuspensionState,
    STUDENT_SUSPENDED,
    STUDENT_UNSUSPENDED,
    SUSPENSION_UPDATED,
    TRUST_SCORE_CHANGED,
)
from sports_lending.domain.scoring import apply_suspension_penalty
from sports_lending.infrastructure.database.models import Student
from sports_lending.infrastructure.database.repositories import StudentRepository, BlacklistRepository
from sports_lending.infrastructure.database.session import transaction
from sports_lending.infrastructure.observability.logging import log_lifecycle_event
from sports_lending.infrastructure.observability.metrics import record_suspension
from sports_lending.services.events import EventPublisher
from sports_lending.utils.date_utils import Clock, ensure_utc

logger = logging.getLogger(__name__)


class SuspensionManager:
    """Owns the suspended/not-suspended state of students and their BlacklistEntry rows"""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        publisher: Optional[EventPublisher] = None,
        config: Settings = default_settings,
    ):
        self.db = db
        self.clock = clock or Clock()
        self.publisher = publisher or EventPublisher()
        self.config = config
        self.students = StudentRepository(db)
        self.entries = BlacklistRepository(db)

    def _get_student(self, student_id: str) -> Student:
        student = self.students.get(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def suspend(
        self,
        student_id: str,
        end_date: Optional[datetime],
        reason: Optional[str],
        blacklisted_by_user_id: Optional[str] = None,
    ) -> Student:
        """
        Suspend a student until end_date.

        The trust penalty applies only on the not-suspended -> suspended
        transition. Suspending an already suspended student edits the end date
        and reason of the active entry without penalising again.

        Raises:
            InvalidSuspensionError: end date missing or not in the future, reason empty
            NotFoundError: unknown student
            ConcurrencyConflictError: another suspend won the race
        """
        now = self.clock.now()
        reason = (reason or "").strip()
        if not reason:
            raise InvalidSuspensionError("Suspension reason is required")
        if end_date is None:
            raise InvalidSuspensionError("Suspension end date is required")
        end_date = ensure_utc(end_date)
        if end_date <= now:
            raise InvalidSuspensionError("Suspension end date must be in the future")

        events: List[StudentEvent] = []
        newly_suspended = False

        with transaction(self.db):
            student = self._get_student(student_id)
            self.expire_if_lapsed(student, now, events)

            if student.is_blacklisted:
                self.students.update_suspension(student, end_date, reason, now)
                active = self.entries.get_active(student.id)
                if active is not None:
                    active.end_date = end_date
                    active.reason = reason
                    self.db.flush()
                else:
                    self.entries.create_entry(student.id, now, end_date, reason, blacklisted_by_user_id)
                events.append(
                    StudentEvent(
                        event=SUSPENSION_UPDATED,
                        student_id=student.id,
                        occurred_at=now,
                        details={"end_date": end_date.isoformat(), "reason": reason},
                    )
                )
            else:
                old_score = student.trust_score
                new_score = apply_suspension_penalty(old_score, self.config.suspension_penalty_factor)
                if not self.students.mark_suspended(student.id, end_date, reason, new_score, now):
                    raise ConcurrencyConflictError(f"Student {student.id} was suspended concurrently")
                self.entries.create_entry(student.id, now, end_date, reason, blacklisted_by_user_id)
                newly_suspended = True

                events.append(
                    StudentEvent(
                        event=STUDENT_SUSPENDED,
                        student_id=student.id,
                        occurred_at=now,
                        details={"end_date": end_date.isoformat(), "reason": reason},
                    )
                )
                if new_score != old_score:
                    events.append(
                        StudentEvent(
                            event=TRUST_SCORE_CHANGED,
                            student_id=student.id,
                            occurred_at=now,
                            details={"old_score": old_score, "new_score": new_score},
                        )
                    )

        if newly_suspended:
            log_lifecycle_event(logger, "student_suspended", "Student suspended", student_id=student_id)
        else:
            log_lifecycle_event(logger, "suspension_updated", "Suspension updated", student_id=student_id)

        self.finish(events)
        return student

    def unsuspend(self, student_id: str) -> Student:
        """Lift a suspension by staff action. Idempotent; the trust penalty stays."""
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            student = self._get_student(student_id)
            if student.is_blacklisted or self.entries.get_active(student.id) is not None:
                self._close_suspension(student, now, "manual", events)

        self.finish(events)
        return student

    def lazy_expire(self, student_id: str) -> bool:
        """Expire the student's suspension if its end date has passed; returns True if it did"""
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            student = self._get_student(student_id)
            expired = self.expire_if_lapsed(student, now, events)

        self.finish(events)
        return expired

    def reconcile_suspensions(self) -> List[str]:
        """
        Expire every lapsed suspension in one pass.

        Safe to run on any read path or on a timer; a second run finds nothing to do.
        Returns the ids of students whose suspension was lifted.
        """
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            expired_ids = self.expire_lapsed(now, events)

        if expired_ids:
            logger.info("Lapsed suspensions expired", extra={"count": len(expired_ids)})
        self.finish(events)
        return expired_ids

    def get_state(self, student_id: str) -> SuspensionState:
        """Current suspension standing, after lazy expiry"""
        self.lazy_expire(student_id)
        student = self._get_student(student_id)
        return SuspensionState(
            student_id=student.id,
            is_blacklisted=student.is_blacklisted,
            end_date=student.blacklist_end_date,
            reason=student.blacklist_reason,
        )

    def finish(self, events: List[StudentEvent]) -> None:
        """Record metrics for and publish events of a committed transaction"""
        for event in events:
            if event.event == STUDENT_SUSPENDED:
                record_suspension("suspended")
            elif event.event == STUDENT_UNSUSPENDED:
                record_suspension("expired" if event.details.get("cause") == "expired" else "unsuspended")
        self.publisher.publish_all(events)

    # The methods below run inside a transaction opened by the caller

    def expire_lapsed(self, now: datetime, events: List[StudentEvent]) -> List[str]:
        expired_ids = []
        for student in self.students.list_lapsed_suspensions(now):
            self._close_suspension(student, now, "expired", events)
            expired_ids.append(student.id)
        return expired_ids

    def expire_if_lapsed(self, student: Student, now: datetime, events: List[StudentEvent]) -> bool:
        if not student.is_blacklisted or student.blacklist_end_date is None:
            return False
        if ensure_utc(student.blacklist_end_date) >= now:
            return False
        self._close_suspension(student, now, "expired", events)
        return True

    def assert_can_borrow(self, student: Student, now: datetime, events: List[StudentEvent]) -> None:
        """Block borrowing while suspended, after giving a lapsed suspension the chance to expire"""
        self.expire_if_lapsed(student, now, events)
        if student.is_blacklisted:
            raise StudentSuspendedError(student.id)

    def _close_suspension(self, student: Student, now: datetime, cause: str, events: List[StudentEvent]) -> None:
        self.students.clear_suspension(student, now)
        closed = self.entries.close_active(student.id)
        events.append(
            StudentEvent(
                event=STUDENT_UNSUSPENDED,
                student_id=student.id,
                occurred_at=now,
                details={"cause": cause},
            )
        )
        log_lifecycle_event(
            logger,
            "student_unsuspended",
            "Suspension lifted",
            student_id=student.id,
            cause=cause,
            entries_closed=closed,
        )
