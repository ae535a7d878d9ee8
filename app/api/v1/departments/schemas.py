from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class DepartmentCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    duration_years: int = Field(..., ge=1, le=6, description="Course duration; batches graduate after this many years")


class DepartmentResponse(BaseModel):
    id: UUID
    name: str
    duration_years: int
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class DepartmentDropdownItem(BaseModel):
    label: str
    value: UUID
