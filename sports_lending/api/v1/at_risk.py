"""At-risk endpoints - flagged repeat late returners and warning dismissal"""

from fastapi import APIRouter, Depends

from sports_lending.api.dependencies import get_at_risk_evaluator
from sports_lending.api.v1.schemas import AtRiskItem, AtRiskResponse, DismissRequest, DismissResponse
from sports_lending.services.at_risk import AtRiskEvaluator

router = APIRouter()


@router.get("/at-risk", response_model=AtRiskResponse)
def list_at_risk(evaluator: AtRiskEvaluator = Depends(get_at_risk_evaluator)):
    """
    Students with enough late returns since their last suspension to warrant a warning.

    Lapsed suspensions are expired and overdue flags refreshed before counting.
    """
    flagged = evaluator.evaluate()
    return AtRiskResponse(
        students=[
            AtRiskItem(
                student_id=s.student_id,
                school_student_id=s.school_student_id,
                full_name=s.full_name,
                trust_score=s.trust_score,
                is_blacklisted=s.is_blacklisted,
                late_returns_since_last_suspension=s.stats.late_returns_since_last_suspension,
                total_late_returns=s.stats.total_late_returns,
                total_suspensions=s.stats.total_suspensions,
                warning_threshold=s.stats.warning_threshold,
                last_suspension_end=s.stats.last_suspension_end,
            )
            for s in flagged
        ]
    )


@router.post("/at-risk/{student_id}/dismiss", response_model=DismissResponse)
def dismiss_warning(
    student_id: str,
    request_body: DismissRequest | None = None,
    evaluator: AtRiskEvaluator = Depends(get_at_risk_evaluator),
):
    request_body = request_body or DismissRequest()
    dismissal = evaluator.dismiss(
        student_id,
        late_return_count=request_body.late_return_count,
        dismissed_by_user_id=request_body.dismissed_by_user_id,
    )
    return DismissResponse(
        student_id=dismissal.student_id,
        late_return_count=dismissal.late_return_count,
        dismissed_at=dismissal.dismissed_at,
    )
