"""Loan endpoints - borrow, return, edit due date, delete, overdue refresh"""

from fastapi import APIRouter, Depends, Response

from sports_lending.api.dependencies import get_loan_manager
from sports_lending.api.v1.schemas import (
    CreateLoanRequest,
    CreateLoanResponse,
    EditLoanRequest,
    LoanResponse,
    RefreshOverdueResponse,
)
from sports_lending.services.loans import LoanManager

router = APIRouter()


@router.post("/loans", response_model=CreateLoanResponse, status_code=201)
def create_loans(request_body: CreateLoanRequest, manager: LoanManager = Depends(get_loan_manager)):
    """
    Lend one or more equipment items to a student.

    All items are borrowed together or not at all.
    """
    loans = manager.create_loans(
        student_id=request_body.student_id,
        equipment_ids=request_body.equipment_ids,
        duration_minutes=request_body.duration_minutes,
        borrowed_by_user_id=request_body.borrowed_by_user_id,
    )
    return CreateLoanResponse(loans=[LoanResponse.model_validate(loan) for loan in loans])


@router.post("/loans/refresh-overdue", response_model=RefreshOverdueResponse)
def refresh_overdue(manager: LoanManager = Depends(get_loan_manager)):
    return RefreshOverdueResponse(changed=manager.refresh_all_overdue())


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, manager: LoanManager = Depends(get_loan_manager)):
    """Fetch a loan with its status re-derived against the current time"""
    return LoanResponse.model_validate(manager.get_loan(loan_id))


@router.post("/loans/{loan_id}/return", response_model=LoanResponse)
def return_loan(loan_id: str, manager: LoanManager = Depends(get_loan_manager)):
    return LoanResponse.model_validate(manager.return_loan(loan_id))


@router.patch("/loans/{loan_id}", response_model=LoanResponse)
def edit_loan(loan_id: str, request_body: EditLoanRequest, manager: LoanManager = Depends(get_loan_manager)):
    return LoanResponse.model_validate(manager.edit_due_date(loan_id, request_body.due_at))


@router.delete("/loans/{loan_id}", status_code=204)
def delete_loan(loan_id: str, manager: LoanManager = Depends(get_loan_manager)):
    manager.delete_loan(loan_id)
    return Response(status_code=204)
