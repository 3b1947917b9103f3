"""Pytest fixtures for testing"""

import itertools
from datetime import datetime, timezone
from typing import Callable, Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session

from sports_lending.api.dependencies import get_clock
from sports_lending.api.main import create_app
from sports_lending.infrastructure.database.models import Base, EquipmentItem, Loan, Student
from sports_lending.infrastructure.database.repositories import EquipmentRepository, StudentRepository
from sports_lending.infrastructure.database.session import get_db
from sports_lending.services.at_risk import AtRiskEvaluator
from sports_lending.services.events import RecordingPublisher
from sports_lending.services.inventory import InventoryManager
from sports_lending.services.loans import LoanManager
from sports_lending.services.suspensions import SuspensionManager
from sports_lending.utils.date_utils import FixedClock


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

T0 = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen at T0; tests move it with clock.advance(minutes=...)"""
    return FixedClock(T0)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def loan_manager(db: Session, clock: FixedClock, publisher: RecordingPublisher) -> LoanManager:
    return LoanManager(db, clock, publisher)


@pytest.fixture
def suspension_manager(db: Session, clock: FixedClock, publisher: RecordingPublisher) -> SuspensionManager:
    return SuspensionManager(db, clock, publisher)


@pytest.fixture
def evaluator(db: Session, clock: FixedClock, publisher: RecordingPublisher) -> AtRiskEvaluator:
    return AtRiskEvaluator(db, clock, publisher)


@pytest.fixture
def inventory_manager(db: Session, clock: FixedClock) -> InventoryManager:
    return InventoryManager(db, clock)


@pytest.fixture
def make_student(db: Session) -> Callable[..., Student]:
    """Factory for committed students"""
    counter = itertools.count(1)

    def _make(**overrides) -> Student:
        n = next(counter)
        fields = {
            "student_id": f"S{n:04d}",
            "full_name": f"Student {n}",
            "year_group": "Year 9",
            "house": "Red",
            "trust_score": 50.0,
        }
        fields.update(overrides)
        student = StudentRepository(db).add(**fields)
        db.commit()
        return student

    return _make


@pytest.fixture
def make_equipment(db: Session) -> Callable[..., EquipmentItem]:
    """Factory for committed equipment items"""
    counter = itertools.count(1)

    def _make(**overrides) -> EquipmentItem:
        n = next(counter)
        fields = {
            "item_id": f"EQ-{n:03d}",
            "name": f"Basketball {n}",
            "category": "Basketball",
            "status": "available",
        }
        fields.update(overrides)
        item = EquipmentRepository(db).add(**fields)
        db.commit()
        return item

    return _make


@pytest.fixture
def borrow_and_return(
    loan_manager: LoanManager,
    clock: FixedClock,
    make_equipment: Callable[..., EquipmentItem],
) -> Callable[..., Loan]:
    """Borrow a fresh item for `duration` minutes, hold it `held` minutes, return it"""

    def _cycle(student: Student, held: int, duration: int = 60) -> Loan:
        item = make_equipment()
        [loan] = loan_manager.create_loans(student.id, [item.id], duration)
        clock.advance(minutes=held)
        return loan_manager.return_loan(loan.id)

    return _cycle


@pytest.fixture
def client(db: Session, clock: FixedClock) -> TestClient:
    """Create FastAPI test client with test database and fixed clock"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    return TestClient(app)
