from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_student
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import WashAllowanceResponse
from . import service

router = APIRouter(prefix="/api/v1/wash-allowances", tags=["wash-allowances"])


@router.get("/my", response_model=WashAllowanceResponse)
async def get_my_wash_allowance(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
) -> WashAllowanceResponse:
    """The calling student's open wash allowance."""
    try:
        return await service.get_my_allowance(db, current_user.student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get(
    "/students/{student_id}",
    response_model=List[WashAllowanceResponse],
    dependencies=[Depends(check_permission("wash_allowances", "read"))],
)
async def list_student_wash_allowances(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> List[WashAllowanceResponse]:
    """All allowances of a student, latest academic year first. Closed ones are kept for history."""
    return await service.list_student_allowances(db, student_id)


@router.get(
    "/{allowance_id}",
    response_model=WashAllowanceResponse,
    dependencies=[Depends(check_permission("wash_allowances", "read"))],
)
async def get_wash_allowance(
    allowance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashAllowanceResponse:
    try:
        return await service.get_allowance_response(db, allowance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{allowance_id}/close",
    response_model=WashAllowanceResponse,
    dependencies=[Depends(check_permission("wash_allowances", "update"))],
)
async def close_wash_allowance(
    allowance_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashAllowanceResponse:
    """Close an allowance. Closing twice returns the same closed allowance."""
    try:
        return await service.close_allowance(db, allowance_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))
