"""Student endpoints - registration, suspension, trust score, summary and loan history"""

from fastapi import APIRouter, Depends

from sports_lending.api.dependencies import (
    get_inventory_manager,
    get_loan_manager,
    get_suspension_manager,
    get_trust_service,
)
from sports_lending.api.v1.schemas import (
    LoanHistoryResponse,
    LoanResponse,
    OverdueStudentsResponse,
    ReconcileResponse,
    RegisterStudentRequest,
    StudentResponse,
    StudentSummaryResponse,
    SuspendRequest,
    SuspensionResponse,
    TrustScoreResponse,
)
from sports_lending.domain.scoring import determine_trust_band
from sports_lending.services.inventory import InventoryManager
from sports_lending.services.loans import LoanManager
from sports_lending.services.suspensions import SuspensionManager
from sports_lending.services.trust import TrustScoreService

router = APIRouter()


def _suspension_response(student) -> SuspensionResponse:
    return SuspensionResponse(
        student_id=student.id,
        is_blacklisted=student.is_blacklisted,
        end_date=student.blacklist_end_date,
        reason=student.blacklist_reason,
    )


@router.post("/students", response_model=StudentResponse, status_code=201)
def register_student(request_body: RegisterStudentRequest, manager: InventoryManager = Depends(get_inventory_manager)):
    """Add a student at the default trust score; a school id is generated when omitted"""
    return StudentResponse.model_validate(manager.register_student(**request_body.model_dump()))


@router.get("/students/overdue", response_model=OverdueStudentsResponse)
def list_overdue_students(manager: LoanManager = Depends(get_loan_manager)):
    """Students holding at least one overdue loan right now"""
    return OverdueStudentsResponse(student_ids=manager.overdue_student_ids())


@router.post("/students/reconcile-suspensions", response_model=ReconcileResponse)
def reconcile_suspensions(manager: SuspensionManager = Depends(get_suspension_manager)):
    """Expire every suspension whose end date has passed"""
    return ReconcileResponse(expired_student_ids=manager.reconcile_suspensions())


@router.post("/students/{student_id}/suspension", response_model=SuspensionResponse)
def suspend_student(
    student_id: str,
    request_body: SuspendRequest,
    manager: SuspensionManager = Depends(get_suspension_manager),
):
    """
    Suspend a student until end_date.

    Suspending an already suspended student updates the end date and reason
    without a second trust penalty.
    """
    student = manager.suspend(
        student_id,
        end_date=request_body.end_date,
        reason=request_body.reason,
        blacklisted_by_user_id=request_body.blacklisted_by_user_id,
    )
    return _suspension_response(student)


@router.delete("/students/{student_id}/suspension", response_model=SuspensionResponse)
def unsuspend_student(student_id: str, manager: SuspensionManager = Depends(get_suspension_manager)):
    return _suspension_response(manager.unsuspend(student_id))


@router.get("/students/{student_id}/suspension", response_model=SuspensionResponse)
def get_suspension(student_id: str, manager: SuspensionManager = Depends(get_suspension_manager)):
    state = manager.get_state(student_id)
    return SuspensionResponse(
        student_id=state.student_id,
        is_blacklisted=state.is_blacklisted,
        end_date=state.end_date,
        reason=state.reason,
    )


@router.get("/students/{student_id}/trust-score", response_model=TrustScoreResponse)
def get_trust_score(student_id: str, service: TrustScoreService = Depends(get_trust_service)):
    score = service.current_score(student_id)
    return TrustScoreResponse(
        student_id=student_id,
        trust_score=score,
        trust_band=determine_trust_band(score),
        on_time_ratio_score=service.compute(student_id),
    )


@router.get("/students/{student_id}/summary", response_model=StudentSummaryResponse)
def get_summary(student_id: str, service: TrustScoreService = Depends(get_trust_service)):
    summary = service.summarize(student_id)
    return StudentSummaryResponse(
        student_id=summary.student_id,
        total_loans=summary.total_loans,
        active_loans=summary.active_loans,
        overdue_count=summary.overdue_count,
        trust_score=summary.trust_score,
        trust_band=summary.trust_band,
        is_blacklisted=summary.is_blacklisted,
    )


@router.get("/students/{student_id}/loans", response_model=LoanHistoryResponse)
def get_student_loans(student_id: str, manager: LoanManager = Depends(get_loan_manager)):
    loans = manager.student_history(student_id)
    return LoanHistoryResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])


@router.get("/students/{student_id}", response_model=StudentResponse)
def get_student(student_id: str, manager: InventoryManager = Depends(get_inventory_manager)):
    return StudentResponse.model_validate(manager.get_student(student_id))
