"""Data access layer for lending entities"""

from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from sports_lending.domain.models import LoanState, EQUIPMENT_AVAILABLE, EQUIPMENT_BORROWED
from sports_lending.infrastructure.database.models import (
    Student,
    EquipmentItem,
    Loan,
    BlacklistEntry,
    LendingSettings,
    DismissedNotification,
)


class StudentRepository:
    """Repository for students and their trust/suspension fields"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, student_id: str) -> Optional[Student]:
        return self.db.get(Student, student_id)

    def get_by_school_id(self, school_student_id: str) -> Optional[Student]:
        return self.db.query(Student).filter(Student.student_id == school_student_id).first()

    def add(self, **fields) -> Student:
        student = Student(**fields)
        self.db.add(student)
        self.db.flush()
        return student

    def list_all(self) -> List[Student]:
        return self.db.query(Student).order_by(Student.full_name).all()

    def list_lapsed_suspensions(self, now: datetime) -> List[Student]:
        """Students still flagged as suspended whose end date has passed"""
        return (
            self.db.query(Student)
            .filter(
                Student.is_blacklisted.is_(True),
                Student.blacklist_end_date.is_not(None),
                Student.blacklist_end_date < now,
            )
            .all()
        )

    def set_trust_score(self, student: Student, score: float, now: datetime) -> None:
        student.trust_score = score
        student.updated_at = now
        self.db.flush()

    def mark_suspended(
        self,
        student_id: str,
        end_date: datetime,
        reason: str,
        new_trust_score: float,
        now: datetime,
    ) -> bool:
        """
        Flip a student to suspended and apply the penalised score in one statement.

        Only matches while the student is not suspended, so two racing suspend
        calls cannot both apply the penalty. Returns False if nothing matched.
        """
        updated = (
            self.db.query(Student)
            .filter(Student.id == student_id, Student.is_blacklisted.is_(False))
            .update(
                {
                    Student.is_blacklisted: True,
                    Student.blacklist_end_date: end_date,
                    Student.blacklist_reason: reason,
                    Student.trust_score: new_trust_score,
                    Student.updated_at: now,
                },
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def update_suspension(self, student: Student, end_date: datetime, reason: str, now: datetime) -> None:
        student.blacklist_end_date = end_date
        student.blacklist_reason = reason
        student.updated_at = now
        self.db.flush()

    def clear_suspension(self, student: Student, now: datetime) -> None:
        student.is_blacklisted = False
        student.blacklist_end_date = None
        student.blacklist_reason = None
        student.updated_at = now
        self.db.flush()


class EquipmentRepository:
    """Repository for equipment items"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, equipment_id: str) -> Optional[EquipmentItem]:
        return self.db.get(EquipmentItem, equipment_id)

    def add(self, **fields) -> EquipmentItem:
        item = EquipmentItem(**fields)
        self.db.add(item)
        self.db.flush()
        return item

    def mark_borrowed(self, equipment_id: str, now: datetime) -> bool:
        """Conditional available -> borrowed flip; False means someone else won"""
        updated = (
            self.db.query(EquipmentItem)
            .filter(EquipmentItem.id == equipment_id, EquipmentItem.status == EQUIPMENT_AVAILABLE)
            .update(
                {EquipmentItem.status: EQUIPMENT_BORROWED, EquipmentItem.updated_at: now},
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def mark_available(self, item: EquipmentItem, now: datetime) -> None:
        item.status = EQUIPMENT_AVAILABLE
        item.updated_at = now
        self.db.flush()

    def get_by_item_id(self, item_id: str) -> Optional[EquipmentItem]:
        return self.db.query(EquipmentItem).filter(EquipmentItem.item_id == item_id).first()

    def set_status(self, equipment_id: str, expected_status: str, new_status: str, now: datetime) -> bool:
        """Conditional status change from the status last read; False means it moved underneath us"""
        updated = (
            self.db.query(EquipmentItem)
            .filter(EquipmentItem.id == equipment_id, EquipmentItem.status == expected_status)
            .update(
                {EquipmentItem.status: new_status, EquipmentItem.updated_at: now},
                synchronize_session="fetch",
            )
        )
        return updated == 1

    def update_details(self, item: EquipmentItem, fields: dict, now: datetime) -> None:
        for name, value in fields.items():
            setattr(item, name, value)
        item.updated_at = now
        self.db.flush()

    def delete(self, item: EquipmentItem) -> None:
        self.db.delete(item)
        self.db.flush()


class LoanRepository:
    """Repository for loans"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, loan_id: str) -> Optional[Loan]:
        return self.db.get(Loan, loan_id)

    def create_loan(
        self,
        student_id: str,
        equipment_id: str,
        borrowed_at: datetime,
        due_at: datetime,
        borrowed_by_user_id: Optional[str] = None,
    ) -> Loan:
        """Persist a new open loan"""
        loan = Loan(
            student_id=student_id,
            equipment_id=equipment_id,
            borrowed_by_user_id=borrowed_by_user_id,
            borrowed_at=borrowed_at,
            due_at=due_at,
            returned_at=None,
            is_overdue=False,
            status="active",
            created_at=borrowed_at,
        )
        self.db.add(loan)
        self.db.flush()  # Get ID without committing
        return loan

    def save_state(self, loan: Loan, state: LoanState) -> bool:
        """Write a derived state back; returns True if anything changed"""
        if loan.is_overdue == state.is_overdue and loan.status == state.status:
            return False
        loan.is_overdue = state.is_overdue
        loan.status = state.status
        self.db.flush()
        return True

    def delete(self, loan: Loan) -> None:
        self.db.delete(loan)
        self.db.flush()

    def list_for_student(self, student_id: str, since: Optional[datetime] = None) -> List[Loan]:
        """Loans for a student, newest first, optionally only those borrowed since a date"""
        query = self.db.query(Loan).filter(Loan.student_id == student_id)
        if since is not None:
            query = query.filter(Loan.borrowed_at >= since)
        return query.order_by(Loan.borrowed_at.desc()).all()

    def list_returned_for_student(self, student_id: str) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.student_id == student_id, Loan.returned_at.is_not(None))
            .all()
        )

    def list_for_equipment(self, equipment_id: str, since: Optional[datetime] = None) -> List[Loan]:
        query = self.db.query(Loan).filter(Loan.equipment_id == equipment_id)
        if since is not None:
            query = query.filter(Loan.borrowed_at >= since)
        return query.order_by(Loan.borrowed_at.desc()).all()

    def list_open(self) -> List[Loan]:
        return self.db.query(Loan).filter(Loan.returned_at.is_(None)).all()

    def count_for_equipment(self, equipment_id: str, open_only: bool = False) -> int:
        query = self.db.query(Loan).filter(Loan.equipment_id == equipment_id)
        if open_only:
            query = query.filter(Loan.returned_at.is_(None))
        return query.count()


class BlacklistRepository:
    """Repository for suspension history"""

    def __init__(self, db: Session):
        self.db = db

    def create_entry(
        self,
        student_id: str,
        start_date: datetime,
        end_date: datetime,
        reason: str,
        blacklisted_by_user_id: Optional[str] = None,
    ) -> BlacklistEntry:
        entry = BlacklistEntry(
            student_id=student_id,
            blacklisted_by_user_id=blacklisted_by_user_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
            is_active=True,
            created_at=start_date,
        )
        self.db.add(entry)
        self.db.flush()
        return entry

    def list_for_student(self, student_id: str) -> List[BlacklistEntry]:
        return (
            self.db.query(BlacklistEntry)
            .filter(BlacklistEntry.student_id == student_id)
            .order_by(BlacklistEntry.start_date.desc())
            .all()
        )

    def get_active(self, student_id: str) -> Optional[BlacklistEntry]:
        return (
            self.db.query(BlacklistEntry)
            .filter(BlacklistEntry.student_id == student_id, BlacklistEntry.is_active.is_(True))
            .first()
        )

    def close_active(self, student_id: str) -> int:
        """Mark every active entry for the student inactive; returns rows closed"""
        return (
            self.db.query(BlacklistEntry)
            .filter(BlacklistEntry.student_id == student_id, BlacklistEntry.is_active.is_(True))
            .update({BlacklistEntry.is_active: False}, synchronize_session="fetch")
        )


class DismissalRepository:
    """Repository for dismissed at-risk warnings"""

    def __init__(self, db: Session):
        self.db = db

    def dismissed_counts(self, student_id: str) -> Set[int]:
        rows = (
            self.db.query(DismissedNotification.late_return_count)
            .filter(DismissedNotification.student_id == student_id)
            .all()
        )
        return {row[0] for row in rows}

    def dismiss(
        self,
        student_id: str,
        late_return_count: int,
        now: datetime,
        dismissed_by_user_id: Optional[str] = None,
    ) -> DismissedNotification:
        """Idempotently record a dismissal for (student, count)"""
        existing = (
            self.db.query(DismissedNotification)
            .filter_by(student_id=student_id, late_return_count=late_return_count)
            .first()
        )
        if existing:
            return existing

        dismissal = DismissedNotification(
            student_id=student_id,
            late_return_count=late_return_count,
            dismissed_by_user_id=dismissed_by_user_id,
            dismissed_at=now,
        )
        self.db.add(dismissal)
        self.db.flush()
        return dismissal


class SettingsRepository:
    """Repository for the school-wide settings row"""

    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self) -> LendingSettings:
        """Return the singleton settings row, seeding defaults on first access"""
        existing = self.db.query(LendingSettings).first()
        if existing:
            return existing

        defaults = LendingSettings(
            school_name="",
            academic_year="",
            overdue_alerts_enabled=True,
            borrow_history_retention_months=12,
            require_student_id=True,
            categories=["Basketball", "Football", "Soccer", "Tennis", "Volleyball", "Other"],
        )
        self.db.add(defaults)
        self.db.flush()
        return defaults
