from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

MIN_WEIGHT_PER_WASH = 0.1


class WashPolicyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description='e.g. "Default Yearly Policy"')
    total_washes: int = Field(30, ge=0, description="Washes per student per academic year")
    max_weight_per_wash: float = Field(7.0, ge=MIN_WEIGHT_PER_WASH, description="kg covered by one wash")
    is_active: bool = Field(False, description="Activate on creation; any other active policy is deactivated")


class WashPolicyUpdate(BaseModel):
    """Editing a policy never changes allowances that already hold its snapshot."""

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    total_washes: Optional[int] = Field(None, ge=0)
    max_weight_per_wash: Optional[float] = Field(None, ge=MIN_WEIGHT_PER_WASH)


class WashPolicyResponse(BaseModel):
    id: UUID
    name: str
    total_washes: int
    max_weight_per_wash: float
    is_active: bool
    is_archived: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ArchivePolicyResponse(BaseModel):
    """was_active=true means the archive left the system without an active policy."""

    policy: WashPolicyResponse
    was_active: bool
    message: str


class PolicySnapshot(BaseModel):
    """Policy values frozen into an allowance at creation time."""

    total_washes: int
    max_weight_per_wash: float
    policy_id: Optional[UUID] = None
