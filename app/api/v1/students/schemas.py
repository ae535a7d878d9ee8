from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import HostelStatus


class StudentCreate(BaseModel):
    batch_id: UUID
    name: str = Field(..., min_length=1, max_length=255)
    registration_number: str = Field(..., min_length=1, max_length=50)
    hostel_status: HostelStatus = HostelStatus.active
    create_allowance: bool = Field(
        False,
        description="Create the current-year wash allowance from the active policy",
    )


class StudentUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    hostel_status: Optional[HostelStatus] = None


class StudentResponse(BaseModel):
    id: UUID
    batch_id: UUID
    name: str
    registration_number: str
    hostel_status: HostelStatus
    is_archived: bool
    allowance_id: Optional[UUID] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
