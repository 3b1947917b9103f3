"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CreateLoanRequest(BaseModel):
    """Request body for POST /v1/loans"""

    student_id: str = Field(..., min_length=1, description="Student record id")
    equipment_ids: List[str] = Field(..., min_length=1, description="Items to lend")
    duration_minutes: Optional[int] = Field(None, description="Borrow duration, clamped to 5-480 minutes")
    borrowed_by_user_id: Optional[str] = None


class EditLoanRequest(BaseModel):
    """Request body for PATCH /v1/loans/{loan_id}"""

    due_at: datetime


class LoanResponse(BaseModel):
    """Single loan"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    equipment_id: str
    borrowed_by_user_id: Optional[str] = None
    borrowed_at: datetime
    due_at: datetime
    returned_at: Optional[datetime] = None
    is_overdue: bool
    status: str


class CreateLoanResponse(BaseModel):
    """Response for POST /v1/loans"""

    loans: List[LoanResponse]


class LoanHistoryResponse(BaseModel):
    """Loans within the retention window, newest first"""

    loans: List[LoanResponse]


class RefreshOverdueResponse(BaseModel):
    changed: int


class SuspendRequest(BaseModel):
    """Request body for POST /v1/students/{student_id}/suspension"""

    end_date: Optional[datetime] = None
    reason: Optional[str] = None
    blacklisted_by_user_id: Optional[str] = None


class SuspensionResponse(BaseModel):
    """Current suspension standing"""

    student_id: str
    is_blacklisted: bool
    end_date: Optional[datetime] = None
    reason: Optional[str] = None


class TrustScoreResponse(BaseModel):
    """Stored trust score and the ratio it would be recomputed to"""

    student_id: str
    trust_score: float
    trust_band: str
    on_time_ratio_score: float


class StudentSummaryResponse(BaseModel):
    """Profile card figures"""

    student_id: str
    total_loans: int
    active_loans: int
    overdue_count: int
    trust_score: float
    trust_band: str
    is_blacklisted: bool


class OverdueStudentsResponse(BaseModel):
    student_ids: List[str]


class ReconcileResponse(BaseModel):
    expired_student_ids: List[str]


class AtRiskItem(BaseModel):
    """Single flagged student"""

    student_id: str
    school_student_id: str
    full_name: str
    trust_score: float
    is_blacklisted: bool
    late_returns_since_last_suspension: int
    total_late_returns: int
    total_suspensions: int
    warning_threshold: int
    last_suspension_end: Optional[datetime] = None


class AtRiskResponse(BaseModel):
    """Response for GET /v1/at-risk"""

    students: List[AtRiskItem]


class DismissRequest(BaseModel):
    """Request body for POST /v1/at-risk/{student_id}/dismiss"""

    late_return_count: Optional[int] = Field(None, ge=0, description="Defaults to the current count")
    dismissed_by_user_id: Optional[str] = None


class DismissResponse(BaseModel):
    student_id: str
    late_return_count: int
    dismissed_at: datetime


class RegisterEquipmentRequest(BaseModel):
    """Request body for POST /v1/equipment"""

    item_id: str = Field(..., min_length=1, description="Label printed on the item")
    name: str = Field(..., min_length=1)
    category: str = Field(..., min_length=1)
    status: str = Field("available", description="available, reserved, repair, lost or damaged")
    location: Optional[str] = None
    condition_notes: Optional[str] = None


class UpdateEquipmentRequest(BaseModel):
    """Request body for PATCH /v1/equipment/{equipment_id}; omitted fields are left alone"""

    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = None
    condition_notes: Optional[str] = None
    status: Optional[str] = None


class EquipmentResponse(BaseModel):
    """Single equipment item"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    item_id: str
    name: str
    category: str
    status: str
    location: Optional[str] = None
    condition_notes: Optional[str] = None


class RegisterStudentRequest(BaseModel):
    """Request body for POST /v1/students"""

    full_name: str = Field(..., min_length=1)
    year_group: str = ""
    student_id: Optional[str] = Field(None, description="School id; generated when omitted")
    class_name: Optional[str] = None
    house: Optional[str] = None
    email: Optional[str] = None


class StudentResponse(BaseModel):
    """Single student record"""

    model_config = ConfigDict(from_attributes=True)

    id: str
    student_id: str
    full_name: str
    year_group: str
    class_name: Optional[str] = None
    house: Optional[str] = None
    email: Optional[str] = None
    trust_score: float
    is_blacklisted: bool
