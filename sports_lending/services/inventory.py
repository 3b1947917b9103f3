"""Inventory and roster management - register, edit and retire equipment, register students"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from sports_lending.config import Settings, settings as default_settings
from sports_lending.domain.exceptions import ConcurrencyConflictError, InvalidStateError, NotFoundError
from sports_lending.domain.models import EQUIPMENT_AVAILABLE, EQUIPMENT_BORROWED, EQUIPMENT_STATUSES
from sports_lending.infrastructure.database.models import EquipmentItem, Student
from sports_lending.infrastructure.database.repositories import (
    StudentRepository,
    EquipmentRepository,
    LoanRepository,
)
from sports_lending.infrastructure.database.session import transaction
from sports_lending.infrastructure.observability.logging import log_lifecycle_event
from sports_lending.utils.date_utils import Clock

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "category", "location", "condition_notes")


class InventoryManager:
    """Staff-side maintenance of equipment items and the student roster"""

    def __init__(self, db: Session, clock: Optional[Clock] = None, config: Settings = default_settings):
        self.db = db
        self.clock = clock or Clock()
        self.config = config
        self.students = StudentRepository(db)
        self.equipment = EquipmentRepository(db)
        self.loans = LoanRepository(db)

    def _get_item(self, equipment_id: str) -> EquipmentItem:
        item = self.equipment.get(equipment_id)
        if item is None:
            raise NotFoundError("Equipment", equipment_id)
        return item

    def get_equipment(self, equipment_id: str) -> EquipmentItem:
        return self._get_item(equipment_id)

    def get_student(self, student_id: str) -> Student:
        student = self.students.get(student_id)
        if student is None:
            raise NotFoundError("Student", student_id)
        return student

    @staticmethod
    def _check_status(status: str) -> None:
        if status not in EQUIPMENT_STATUSES:
            raise InvalidStateError(f"Unknown equipment status: {status}")
        if status == EQUIPMENT_BORROWED:
            raise InvalidStateError("Items become borrowed only by lending them")

    def register_equipment(
        self,
        item_id: str,
        name: str,
        category: str,
        status: str = EQUIPMENT_AVAILABLE,
        location: Optional[str] = None,
        condition_notes: Optional[str] = None,
    ) -> EquipmentItem:
        """
        Add an item to the inventory.

        Raises:
            InvalidStateError: status unknown or 'borrowed', or item_id already in use
        """
        self._check_status(status)
        now = self.clock.now()

        with transaction(self.db):
            if self.equipment.get_by_item_id(item_id) is not None:
                raise InvalidStateError(f"Equipment item_id {item_id} already exists")
            item = self.equipment.add(
                item_id=item_id,
                name=name,
                category=category,
                status=status,
                location=location,
                condition_notes=condition_notes,
                created_at=now,
                updated_at=now,
            )

        log_lifecycle_event(logger, "equipment_registered", "Equipment registered", equipment_id=item.id, status=status)
        return item

    def update_equipment(self, equipment_id: str, status: Optional[str] = None, **fields) -> EquipmentItem:
        """
        Edit an item's details and, optionally, its status.

        An item referenced by an open loan stays 'borrowed' until the loan is
        returned or deleted, so any status change on it is refused. The change is
        applied against the status just read; a borrow landing in between is a
        ConcurrencyConflictError.
        """
        unknown = set(fields) - set(_EDITABLE_FIELDS)
        if unknown:
            raise InvalidStateError(f"Fields cannot be edited: {', '.join(sorted(unknown))}")
        for required in ("name", "category"):
            if required in fields and not fields[required]:
                raise InvalidStateError(f"Equipment {required} cannot be blank")
        if status is not None:
            self._check_status(status)
        now = self.clock.now()

        with transaction(self.db):
            item = self._get_item(equipment_id)
            if fields:
                self.equipment.update_details(item, fields, now)

            if status is not None and status != item.status:
                if self.loans.count_for_equipment(item.id, open_only=True):
                    raise InvalidStateError(f"Equipment {equipment_id} is on loan; return the loan first")
                if not self.equipment.set_status(item.id, item.status, status, now):
                    raise ConcurrencyConflictError(f"Equipment {equipment_id} changed concurrently")

        log_lifecycle_event(
            logger,
            "equipment_updated",
            "Equipment updated",
            equipment_id=equipment_id,
            status=item.status,
        )
        return item

    def delete_equipment(self, equipment_id: str) -> None:
        """
        Remove an item that has never been lent.

        Items with loan history are kept so past loans and trust scores stay
        intact; mark them 'lost' or 'damaged' instead.
        """
        with transaction(self.db):
            item = self._get_item(equipment_id)
            if self.loans.count_for_equipment(item.id, open_only=True):
                raise InvalidStateError(f"Equipment {equipment_id} is on loan")
            if self.loans.count_for_equipment(item.id):
                raise InvalidStateError(f"Equipment {equipment_id} has loan history; retire it by status instead")
            self.equipment.delete(item)

        log_lifecycle_event(logger, "equipment_deleted", "Equipment deleted", equipment_id=equipment_id)

    def register_student(
        self,
        full_name: str,
        year_group: str = "",
        student_id: Optional[str] = None,
        class_name: Optional[str] = None,
        house: Optional[str] = None,
        email: Optional[str] = None,
    ) -> Student:
        """
        Add a student to the roster at the neutral trust score.

        A missing school id is generated as STU + the last six digits of the
        current millisecond timestamp.
        """
        full_name = (full_name or "").strip()
        if not full_name:
            raise InvalidStateError("Student name is required")
        now = self.clock.now()

        with transaction(self.db):
            if not student_id:
                student_id = f"STU{int(now.timestamp() * 1000) % 1_000_000:06d}"
            if self.students.get_by_school_id(student_id) is not None:
                raise InvalidStateError(f"Student id {student_id} already exists")

            student = self.students.add(
                student_id=student_id,
                full_name=full_name,
                year_group=year_group,
                class_name=class_name,
                house=house,
                email=email,
                trust_score=self.config.default_trust_score,
                is_blacklisted=False,
                created_at=now,
                updated_at=now,
            )

        log_lifecycle_event(logger, "student_registered", "Student registered", student_id=student.id)
        return student
