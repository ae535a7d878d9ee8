from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field


# ----- Batch years -----
class BatchYearInput(BaseModel):
    year_no: int = Field(..., ge=1, le=6)
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class BatchYearsUpdate(BaseModel):
    """Full years array; year_no must match the position (1-based)."""

    years: List[BatchYearInput]


class BatchYearResponse(BaseModel):
    year_no: int
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    class Config:
        from_attributes = True


class YearWindowViolation(BaseModel):
    conflicting_years: List[int]
    message: str


class YearWindowsCheckResponse(BaseModel):
    ok: bool
    conflicting_years: List[int] = []
    message: Optional[str] = None


# ----- Batch -----
class BatchCreate(BaseModel):
    department_id: UUID
    start_year: int = Field(..., ge=2000, le=2100)
    end_year: int = Field(..., ge=2000, le=2100)
    year_1_start_date: date
    year_1_end_date: date


class BatchResponse(BaseModel):
    id: UUID
    department_id: UUID
    department_name: str
    duration_years: int
    batch_label: str
    start_year: int
    end_year: int
    current_year: int
    graduated: bool
    is_archived: bool
    years: List[BatchYearResponse]
    created_at: datetime
    updated_at: datetime


# ----- Promotion -----
class PromotionOptions(BaseModel):
    """Override values replace the active policy for this promotion only."""

    use_policy_override: bool = False
    total_washes: Optional[int] = None
    max_weight_per_wash: Optional[float] = None


class ProvisionRequest(PromotionOptions):
    """Create missing current-year allowances. student_ids=None means every active student of the batch."""

    student_ids: Optional[List[UUID]] = None


class ProvisionedStudent(BaseModel):
    id: UUID
    name: str
    registration_number: str
    allowance_id: UUID


class PromotionFailure(BaseModel):
    student_id: UUID
    reason: str


class PromotionResult(BaseModel):
    batch_id: UUID
    previous_year: int
    current_year: int
    graduated: bool
    closed_count: int
    promoted: List[ProvisionedStudent]
    failed: List[PromotionFailure]


class ProvisionResult(BaseModel):
    batch_id: UUID
    year_no: int
    provisioned: List[ProvisionedStudent]
    failed: List[PromotionFailure]
