"""Loan lifecycle manager - borrow, return, edit, delete and overdue refresh"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence

from sqlalchemy.orm import Session

from sports_lending.config import Settings, settings as default_settings
from sports_lending.domain.exceptions import (
    ConcurrencyConflictError,
    DomainException,
    EquipmentUnavailableError,
    InvalidStateError,
    LoanAlreadyReturnedError,
    NotFoundError,
    StudentSuspendedError,
)
from sports_lending.domain.lifecycle import clamp_duration, compute_due_at, derive_loan_state
from sports_lending.domain.models import StudentEvent, EQUIPMENT_AVAILABLE, LOAN_OVERDUE, LOAN_RETURNED
from sports_lending.domain.scoring import is_late_return
from sports_lending.infrastructure.database.models import Loan, Student
from sports_lending.infrastructure.database.repositories import (
    StudentRepository,
    EquipmentRepository,
    LoanRepository,
    SettingsRepository,
)
from sports_lending.infrastructure.database.session import transaction
from sports_lending.infrastructure.observability.logging import log_lifecycle_event
from sports_lending.infrastructure.observability.metrics import (
    loans_created_counter,
    record_borrow_rejection,
    record_return,
)
from sports_lending.services.events import EventPublisher
from sports_lending.services.suspensions import SuspensionManager
from sports_lending.services.trust import TrustScoreService
from sports_lending.utils.date_utils import Clock, ensure_utc, subtract_months

logger = logging.getLogger(__name__)

_REJECTION_REASONS = (
    (StudentSuspendedError, "suspended"),
    (EquipmentUnavailableError, "unavailable"),
    (NotFoundError, "not_found"),
    (ConcurrencyConflictError, "conflict"),
)


class LoanManager:
    """Creates and closes loans and keeps equipment status and trust scores in step"""

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
        self.equipment = EquipmentRepository(db)
        self.loans = LoanRepository(db)
        self.trust = TrustScoreService(db, self.clock, config)
        self.suspensions = SuspensionManager(db, self.clock, self.publisher, config)

    def _get_loan(self, loan_id: str) -> Loan:
        loan = self.loans.get(loan_id)
        if loan is None:
            raise NotFoundError("Loan", loan_id)
        return loan

    def _get_student(self, student_id: str) -> Student:
        student = self.students.get(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    def create_loans(
        self,
        student_id: str,
        equipment_ids: Sequence[str],
        duration_minutes: Optional[int] = None,
        borrowed_by_user_id: Optional[str] = None,
    ) -> List[Loan]:
        """
        Lend one or more items to a student.

        Flow:
        1. Clamp the duration into the configured window (default 60 minutes)
        2. Expire a lapsed suspension, then block suspended students
        3. For each item: check it is available, flip it to borrowed with a
           conditional update, open the loan
        4. Commit all items together; any failure leaves nothing borrowed

        Raises:
            NotFoundError: unknown student or equipment
            StudentSuspendedError: student is suspended
            EquipmentUnavailableError: an item is not available
            ConcurrencyConflictError: an item was borrowed between check and write
        """
        equipment_ids = list(equipment_ids)
        if not equipment_ids:
            raise InvalidStateError("At least one equipment item is required")
        if len(set(equipment_ids)) != len(equipment_ids):
            raise InvalidStateError("The same equipment item was selected twice")

        minutes = clamp_duration(
            duration_minutes if duration_minutes is not None else self.config.default_loan_minutes,
            self.config.min_loan_minutes,
            self.config.max_loan_minutes,
        )
        now = self.clock.now()
        due_at = compute_due_at(now, minutes)
        events: List[StudentEvent] = []

        try:
            with transaction(self.db):
                student = self._get_student(student_id)
                self.suspensions.assert_can_borrow(student, now, events)

                loans = []
                for equipment_id in equipment_ids:
                    item = self.equipment.get(equipment_id)
                    if item is None:
                        raise NotFoundError("Equipment", equipment_id)
                    if item.status != EQUIPMENT_AVAILABLE:
                        raise EquipmentUnavailableError(equipment_id, item.status)
                    if not self.equipment.mark_borrowed(equipment_id, now):
                        raise ConcurrencyConflictError(f"Equipment {equipment_id} was borrowed concurrently")

                    loans.append(
                        self.loans.create_loan(
                            student_id=student.id,
                            equipment_id=equipment_id,
                            borrowed_at=now,
                            due_at=due_at,
                            borrowed_by_user_id=borrowed_by_user_id,
                        )
                    )
        except DomainException as e:
            for exc_type, reason in _REJECTION_REASONS:
                if isinstance(e, exc_type):
                    record_borrow_rejection(reason)
                    break
            logger.warning(f"Borrow rejected: {e}", extra={"student_id": student_id})
            raise

        loans_created_counter.inc(len(loans))
        for loan in loans:
            log_lifecycle_event(
                logger,
                "loan_created",
                "Loan created",
                student_id=student_id,
                loan_id=loan.id,
                equipment_id=loan.equipment_id,
                duration_minutes=minutes,
            )
        self.suspensions.finish(events)
        return loans

    def return_loan(self, loan_id: str) -> Loan:
        """Close a loan, release its equipment and recompute the student's trust score"""
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            loan = self._get_loan(loan_id)
            if loan.returned_at is not None:
                raise LoanAlreadyReturnedError(loan_id)

            loan.returned_at = now
            loan.status = LOAN_RETURNED
            loan.is_overdue = False
            self.db.flush()

            item = self.equipment.get(loan.equipment_id)
            if item is not None:
                self.equipment.mark_available(item, now)

            self.trust.refresh(self._get_student(loan.student_id), now, events)

        late = is_late_return(loan)
        record_return(late)
        log_lifecycle_event(
            logger,
            "loan_returned",
            "Loan returned",
            student_id=loan.student_id,
            loan_id=loan.id,
            equipment_id=loan.equipment_id,
            late=late,
        )
        self.publisher.publish_all(events)
        return loan

    def edit_due_date(self, loan_id: str, new_due_at: Optional[datetime]) -> Loan:
        """
        Move a loan's due time.

        Status is re-derived against now (a returned loan stays returned) and the
        trust score is recomputed, since a returned loan can flip between late and
        on time.
        """
        if new_due_at is None:
            raise InvalidStateError("A new due date is required")
        new_due_at = ensure_utc(new_due_at)
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            loan = self._get_loan(loan_id)
            if new_due_at <= ensure_utc(loan.borrowed_at):
                raise InvalidStateError("Due date must be after the borrow time")

            loan.due_at = new_due_at
            self.loans.save_state(loan, derive_loan_state(new_due_at, loan.returned_at, now))
            self.db.flush()

            self.trust.refresh(self._get_student(loan.student_id), now, events)

        log_lifecycle_event(
            logger,
            "loan_due_date_edited",
            "Loan due date edited",
            student_id=loan.student_id,
            loan_id=loan.id,
            due_at=new_due_at.isoformat(),
        )
        self.publisher.publish_all(events)
        return loan

    def delete_loan(self, loan_id: str) -> None:
        """
        Hard-delete a loan (admin override).

        An open loan releases its equipment and leaves the trust score alone, as
        it never counted towards it. A returned loan is removed from the ratio and
        the score recomputed.
        """
        now = self.clock.now()
        events: List[StudentEvent] = []

        with transaction(self.db):
            loan = self._get_loan(loan_id)
            student_id = loan.student_id
            equipment_id = loan.equipment_id
            was_returned = loan.returned_at is not None

            if not was_returned:
                item = self.equipment.get(equipment_id)
                if item is not None:
                    self.equipment.mark_available(item, now)

            self.loans.delete(loan)

            if was_returned:
                self.trust.refresh(self._get_student(student_id), now, events)

        log_lifecycle_event(
            logger,
            "loan_deleted",
            "Loan deleted",
            student_id=student_id,
            loan_id=loan_id,
            equipment_id=equipment_id,
            was_returned=was_returned,
        )
        self.publisher.publish_all(events)

    def refresh_overdue_status(self, loan_id: str) -> Loan:
        """Re-derive and persist one loan's overdue flag and status"""
        now = self.clock.now()
        with transaction(self.db):
            loan = self._get_loan(loan_id)
            self.loans.save_state(loan, derive_loan_state(loan.due_at, loan.returned_at, now))
        return loan

    def get_loan(self, loan_id: str) -> Loan:
        return self.refresh_overdue_status(loan_id)

    def refresh_all_overdue(self) -> int:
        """Re-derive every open loan; returns how many changed"""
        now = self.clock.now()
        with transaction(self.db):
            changed = self.refresh_open_loans(now)
        if changed:
            logger.info("Overdue status refreshed", extra={"changed": changed})
        return changed

    def refresh_open_loans(self, now: datetime) -> int:
        """Runs inside the caller's transaction"""
        changed = 0
        for loan in self.loans.list_open():
            if self.loans.save_state(loan, derive_loan_state(loan.due_at, loan.returned_at, now)):
                changed += 1
        return changed

    def overdue_student_ids(self) -> List[str]:
        """Students currently holding at least one overdue loan"""
        now = self.clock.now()
        with transaction(self.db):
            self.refresh_open_loans(now)
            overdue = {loan.student_id for loan in self.loans.list_open() if loan.status == LOAN_OVERDUE}
        return sorted(overdue)

    def _retention_start(self, now: datetime) -> datetime:
        months = SettingsRepository(self.db).get_or_create().borrow_history_retention_months
        return subtract_months(now, months)

    def student_history(self, student_id: str) -> List[Loan]:
        """Loans within the retention window, newest first, statuses re-derived"""
        now = self.clock.now()
        with transaction(self.db):
            self._get_student(student_id)
            loans = self.loans.list_for_student(student_id, since=self._retention_start(now))
            for loan in loans:
                self.loans.save_state(loan, derive_loan_state(loan.due_at, loan.returned_at, now))
        return loans

    def equipment_history(self, equipment_id: str) -> List[Loan]:
        """Loans of one item within the retention window, newest first"""
        now = self.clock.now()
        with transaction(self.db):
            if self.equipment.get(equipment_id) is None:
                raise NotFoundError("Equipment", equipment_id)
            loans = self.loans.list_for_equipment(equipment_id, since=self._retention_start(now))
            for loan in loans:
                self.loans.save_state(loan, derive_loan_state(loan.due_at, loan.returned_at, now))
        return loans
