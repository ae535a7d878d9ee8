from datetime import date, datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel

from app.core.enums import AllowanceStatus


class WashAllowanceResponse(BaseModel):
    id: UUID
    student_id: UUID
    batch_id: UUID
    year_no: int
    policy_id: Optional[UUID] = None
    total_washes: int
    max_weight_per_wash: float
    used_washes: int
    remaining_washes: int
    status: AllowanceStatus
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    closed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
