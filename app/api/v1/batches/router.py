from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import (
    BatchCreate,
    BatchResponse,
    BatchYearsUpdate,
    PromotionOptions,
    PromotionResult,
    ProvisionRequest,
    ProvisionResult,
    YearWindowsCheckResponse,
)
from . import promotion, service

router = APIRouter(prefix="/api/v1/batches", tags=["batches"])


@router.post(
    "",
    response_model=BatchResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("batches", "create"))],
)
async def create_batch(
    payload: BatchCreate,
    db: AsyncSession = Depends(get_db),
) -> BatchResponse:
    """Create a batch. end_year - start_year must equal the department duration."""
    try:
        return await service.create_batch(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get(
    "",
    response_model=List[BatchResponse],
    dependencies=[Depends(check_permission("batches", "read"))],
)
async def list_batches(
    include_archived: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[BatchResponse]:
    return await service.list_batches(db, include_archived=include_archived)


@router.get(
    "/{batch_id}",
    response_model=BatchResponse,
    dependencies=[Depends(check_permission("batches", "read"))],
)
async def get_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> BatchResponse:
    try:
        return await service.get_batch(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{batch_id}/years",
    response_model=BatchResponse,
    dependencies=[Depends(check_permission("batches", "update"))],
)
async def update_batch_years(
    batch_id: UUID,
    payload: BatchYearsUpdate,
    db: AsyncSession = Depends(get_db),
) -> BatchResponse:
    """Replace the year windows. Overlapping or touching years are rejected with the conflicting pair."""
    try:
        return await service.update_batch_years(db, batch_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{batch_id}/years/validate",
    response_model=YearWindowsCheckResponse,
    dependencies=[Depends(check_permission("batches", "read"))],
)
async def validate_batch_years(
    batch_id: UUID,
    payload: BatchYearsUpdate,
    db: AsyncSession = Depends(get_db),
) -> YearWindowsCheckResponse:
    """Check year windows without saving them."""
    try:
        return await service.validate_batch_years(db, batch_id, payload.years)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.delete(
    "/{batch_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("batches", "delete"))],
)
async def archive_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.archive_batch(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{batch_id}/restore",
    response_model=BatchResponse,
    dependencies=[Depends(check_permission("batches", "update"))],
)
async def restore_batch(
    batch_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> BatchResponse:
    try:
        return await service.restore_batch(db, batch_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{batch_id}/promote",
    response_model=PromotionResult,
    dependencies=[Depends(check_permission("batches", "promote"))],
)
async def promote_batch(
    batch_id: UUID,
    payload: PromotionOptions,
    db: AsyncSession = Depends(get_db),
) -> PromotionResult:
    """Close this year's allowances and open next year's, or graduate the batch. Per-student failures are listed in `failed`."""
    try:
        return await promotion.promote_batch(db, batch_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{batch_id}/allowances",
    response_model=ProvisionResult,
    dependencies=[Depends(check_permission("batches", "promote"))],
)
async def provision_batch_allowances(
    batch_id: UUID,
    payload: ProvisionRequest,
    db: AsyncSession = Depends(get_db),
) -> ProvisionResult:
    """Create missing current-year allowances, e.g. to retry students a promotion could not provision."""
    try:
        return await promotion.provision_allowances(db, batch_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))
