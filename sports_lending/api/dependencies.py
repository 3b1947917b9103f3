"""Dependency injection for FastAPI endpoints"""

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from sports_lending.domain.models import StudentEvent
from sports_lending.infrastructure.clients.notifications import NotificationClient
from sports_lending.infrastructure.database.session import get_db
from sports_lending.services.at_risk import AtRiskEvaluator
from sports_lending.services.events import EventPublisher
from sports_lending.services.inventory import InventoryManager
from sports_lending.services.loans import LoanManager
from sports_lending.services.suspensions import SuspensionManager
from sports_lending.services.trust import TrustScoreService
from sports_lending.utils.date_utils import Clock


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_clock() -> Clock:
    """Provide the wall clock; tests override with a fixed one"""
    return Clock()


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_publisher(
    background_tasks: BackgroundTasks,
    notification_client: NotificationClient = Depends(get_notification_client),
) -> EventPublisher:
    """Publisher that forwards committed events to the webhook after the response is sent"""
    publisher = EventPublisher()
    if notification_client.enabled:

        def forward(event: StudentEvent) -> None:
            background_tasks.add_task(notification_client.send_event, event.to_payload())

        publisher.subscribe(forward)
    return publisher


def get_loan_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    publisher: EventPublisher = Depends(get_publisher),
) -> LoanManager:
    return LoanManager(db, clock, publisher)


def get_suspension_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    publisher: EventPublisher = Depends(get_publisher),
) -> SuspensionManager:
    return SuspensionManager(db, clock, publisher)


def get_trust_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> TrustScoreService:
    return TrustScoreService(db, clock)


def get_at_risk_evaluator(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
    publisher: EventPublisher = Depends(get_publisher),
) -> AtRiskEvaluator:
    return AtRiskEvaluator(db, clock, publisher)


def get_inventory_manager(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> InventoryManager:
    return InventoryManager(db, clock)
