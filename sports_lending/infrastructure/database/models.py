"""SQLAlchemy ORM models for the lending record store"""

import uuid
from datetime import datetime, timezone
from sqlalchemy import (
    Column,
    String,
    Boolean,
    Float,
    DateTime,
    Integer,
    ForeignKey,
    Text,
    JSON,
    Index,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.types import TypeDecorator

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Store naive UTC, always hand back timezone-aware UTC (SQLite drops tzinfo)"""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.replace(tzinfo=None)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Student(Base):
    """Student who can borrow equipment"""

    __tablename__ = "students"

    id = Column(String(36), primary_key=True, default=_new_id)
    student_id = Column(Text, nullable=False, unique=True)
    full_name = Column(Text, nullable=False, index=True)
    year_group = Column(Text, nullable=False, default="")
    class_name = Column(Text, nullable=True)
    house = Column(Text, nullable=True)
    email = Column(Text, nullable=True)
    trust_score = Column(Float, nullable=False, default=50.0)
    is_blacklisted = Column(Boolean, nullable=False, default=False)
    blacklist_end_date = Column(UTCDateTime, nullable=True)
    blacklist_reason = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    loans = relationship("Loan", back_populates="student")
    blacklist_entries = relationship("BlacklistEntry", back_populates="student")


class EquipmentItem(Base):
    """Lendable piece of sports equipment"""

    __tablename__ = "equipment"

    id = Column(String(36), primary_key=True, default=_new_id)
    item_id = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    category = Column(Text, nullable=False, index=True)
    location = Column(Text, nullable=True)
    status = Column(String(16), nullable=False, default="available", index=True)
    condition_notes = Column(Text, nullable=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    loans = relationship("Loan", back_populates="equipment")


class Loan(Base):
    """One equipment item lent to one student"""

    __tablename__ = "loans"

    id = Column(String(36), primary_key=True, default=_new_id)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    equipment_id = Column(String(36), ForeignKey("equipment.id"), nullable=False, index=True)
    borrowed_by_user_id = Column(Text, nullable=True)
    borrowed_at = Column(UTCDateTime, nullable=False)
    due_at = Column(UTCDateTime, nullable=False)
    returned_at = Column(UTCDateTime, nullable=True)
    is_overdue = Column(Boolean, nullable=False, default=False)
    status = Column(String(16), nullable=False, default="active", index=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    student = relationship("Student", back_populates="loans")
    equipment = relationship("EquipmentItem", back_populates="loans")


class BlacklistEntry(Base):
    """Suspension history; at most one active row per student"""

    __tablename__ = "blacklist_entries"
    __table_args__ = (
        Index(
            "uq_blacklist_entries_one_active",
            "student_id",
            unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active = true"),
        ),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    blacklisted_by_user_id = Column(Text, nullable=True)
    start_date = Column(UTCDateTime, nullable=False)
    end_date = Column(UTCDateTime, nullable=False)
    reason = Column(Text, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(UTCDateTime, nullable=False, default=_utcnow)

    student = relationship("Student", back_populates="blacklist_entries")


class LendingSettings(Base):
    """School-wide preferences (singleton row)"""

    __tablename__ = "settings"

    id = Column(String(36), primary_key=True, default=_new_id)
    school_name = Column(Text, nullable=False, default="")
    academic_year = Column(Text, nullable=False, default="")
    overdue_alerts_enabled = Column(Boolean, nullable=False, default=True)
    borrow_history_retention_months = Column(Integer, nullable=False, default=12)
    require_student_id = Column(Boolean, nullable=False, default=True)
    categories = Column(JSON, nullable=False, default=list)
    updated_at = Column(UTCDateTime, nullable=False, default=_utcnow)


class DismissedNotification(Base):
    """At-risk warning dismissed by staff at a given late-return count"""

    __tablename__ = "dismissed_notifications"
    __table_args__ = (
        UniqueConstraint("student_id", "late_return_count", name="uq_dismissed_student_count"),
    )

    id = Column(String(36), primary_key=True, default=_new_id)
    student_id = Column(String(36), ForeignKey("students.id"), nullable=False, index=True)
    late_return_count = Column(Integer, nullable=False)
    dismissed_by_user_id = Column(Text, nullable=True)
    dismissed_at = Column(UTCDateTime, nullable=False, default=_utcnow)
