from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import require_student
from app.auth.rbac import check_permission
from app.auth.schemas import CurrentUser
from app.core.enums import WashRequestStatus
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import (
    StatusUpdate,
    WashRequestCreate,
    WashRequestPage,
    WashRequestResponse,
    WashRequestStats,
    WeightResult,
    WeightUpdate,
)
from . import service

router = APIRouter(prefix="/api/v1/wash-requests", tags=["wash-requests"])


# ----- Student -----
@router.post(
    "",
    response_model=WashRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_wash_request(
    payload: WashRequestCreate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
) -> WashRequestResponse:
    """Create a wash request for the calling student. Staff weigh the laundry later."""
    try:
        return await service.create_wash_request(db, current_user.student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get("/my", response_model=List[WashRequestResponse])
async def list_my_wash_requests(
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
) -> List[WashRequestResponse]:
    return await service.list_my_wash_requests(db, current_user.student_id)


@router.get("/my/{request_id}", response_model=WashRequestResponse)
async def get_my_wash_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(require_student),
) -> WashRequestResponse:
    try:
        return await service.get_student_wash_request(db, current_user.student_id, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


# ----- Staff -----
@router.get(
    "/stats",
    response_model=WashRequestStats,
    dependencies=[Depends(check_permission("wash_requests", "read"))],
)
async def get_wash_request_stats(
    db: AsyncSession = Depends(get_db),
) -> WashRequestStats:
    """Number of requests per status, plus the total."""
    return await service.get_wash_request_stats(db)


@router.get(
    "",
    response_model=WashRequestPage,
    dependencies=[Depends(check_permission("wash_requests", "read"))],
)
async def list_wash_requests(
    status_filter: Optional[WashRequestStatus] = Query(None, alias="status"),
    student_id: Optional[UUID] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
) -> WashRequestPage:
    return await service.list_wash_requests(
        db, status_filter=status_filter, student_id=student_id, page=page, limit=limit
    )


@router.get(
    "/{request_id}",
    response_model=WashRequestResponse,
    dependencies=[Depends(check_permission("wash_requests", "read"))],
)
async def get_wash_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashRequestResponse:
    try:
        return await service.get_wash_request(db, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{request_id}/weight",
    response_model=WeightResult,
    dependencies=[Depends(check_permission("wash_requests", "process"))],
)
async def record_wash_request_weight(
    request_id: UUID,
    payload: WeightUpdate,
    db: AsyncSession = Depends(get_db),
) -> WeightResult:
    """Record the weight and debit the allowance. Insufficient washes cancel the request (auto_cancelled=true)."""
    try:
        return await service.record_weight(db, request_id, payload.weight_kg)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{request_id}/status",
    response_model=WashRequestResponse,
    dependencies=[Depends(check_permission("wash_requests", "process"))],
)
async def set_wash_request_status(
    request_id: UUID,
    payload: StatusUpdate,
    db: AsyncSession = Depends(get_db),
) -> WashRequestResponse:
    """Advance the request one step, or cancel it with a reason."""
    try:
        return await service.set_request_status(
            db, request_id, payload.status, reason=payload.cancellation_reason
        )
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.delete(
    "/{request_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("wash_requests", "delete"))],
)
async def delete_wash_request(
    request_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.delete_wash_request(db, request_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))
