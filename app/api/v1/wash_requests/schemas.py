from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import WashRequestStatus


class WashRequestCreate(BaseModel):
    """Created by the student; the laundry is weighed later by staff."""

    cloth_count: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = Field(None, max_length=2000)


class WeightUpdate(BaseModel):
    # Range checked by the service so a non-positive weight is a 400, not a schema error
    weight_kg: float = Field(..., description="Measured laundry weight in kg, must be greater than 0")


class StatusUpdate(BaseModel):
    status: WashRequestStatus
    cancellation_reason: Optional[str] = Field(
        None,
        max_length=2000,
        description="Required when cancelling, unless the request already has a reason",
    )


class WashRequestResponse(BaseModel):
    id: UUID
    student_id: UUID
    allowance_id: Optional[UUID] = None
    cloth_count: int
    weight_kg: Optional[float] = None
    wash_count: int
    status: WashRequestStatus
    notes: Optional[str] = None
    cancellation_reason: Optional[str] = None
    returned_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WeightResult(BaseModel):
    """Outcome of weighing. auto_cancelled=true is a normal outcome, not an error."""

    request: WashRequestResponse
    auto_cancelled: bool
    message: str
    required_washes: Optional[int] = None
    available_washes: Optional[int] = None


class WashRequestPage(BaseModel):
    items: List[WashRequestResponse]
    page: int
    limit: int
    total: int
    pages: int


class WashRequestStats(BaseModel):
    pickup_pending: int = 0
    picked_up: int = 0
    washing: int = 0
    completed: int = 0
    returned: int = 0
    cancelled: int = 0
    total: int = 0
