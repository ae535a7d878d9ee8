from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import ArchivePolicyResponse, WashPolicyCreate, WashPolicyResponse, WashPolicyUpdate
from . import service

router = APIRouter(prefix="/api/v1/wash-policies", tags=["wash-policies"])


@router.post(
    "",
    response_model=WashPolicyResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("wash_policies", "create"))],
)
async def create_wash_policy(
    payload: WashPolicyCreate,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    """Create a wash policy. is_active=true swaps it in as the only active policy."""
    try:
        return await service.create_policy(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get(
    "",
    response_model=List[WashPolicyResponse],
    dependencies=[Depends(check_permission("wash_policies", "read"))],
)
async def list_wash_policies(
    include_archived: bool = Query(False, description="Include archived policies"),
    db: AsyncSession = Depends(get_db),
) -> List[WashPolicyResponse]:
    return await service.list_policies(db, include_archived=include_archived)


@router.get(
    "/active",
    response_model=Optional[WashPolicyResponse],
    dependencies=[Depends(check_permission("wash_policies", "read"))],
)
async def get_active_wash_policy(
    db: AsyncSession = Depends(get_db),
) -> Optional[WashPolicyResponse]:
    """The active policy used for new allowances, or null when none is active."""
    return await service.get_active(db)


@router.get(
    "/{policy_id}",
    response_model=WashPolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "read"))],
)
async def get_wash_policy(
    policy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    try:
        return await service.get_policy(db, policy_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{policy_id}",
    response_model=WashPolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "update"))],
)
async def update_wash_policy(
    policy_id: UUID,
    payload: WashPolicyUpdate,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    """Update name or values. Existing allowances keep their snapshot."""
    try:
        return await service.update_policy(db, policy_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{policy_id}/activate",
    response_model=WashPolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "update"))],
)
async def activate_wash_policy(
    policy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    """Make this the only active policy; the previous active policy is deactivated."""
    try:
        return await service.activate_policy(db, policy_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.post(
    "/{policy_id}/deactivate",
    response_model=WashPolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "update"))],
)
async def deactivate_wash_policy(
    policy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    try:
        return await service.deactivate_policy(db, policy_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.delete(
    "/{policy_id}",
    response_model=ArchivePolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "delete"))],
)
async def archive_wash_policy(
    policy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> ArchivePolicyResponse:
    """Archive (soft delete). Allowed for the active policy; the response reports it."""
    try:
        return await service.archive_policy(db, policy_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{policy_id}/restore",
    response_model=WashPolicyResponse,
    dependencies=[Depends(check_permission("wash_policies", "update"))],
)
async def restore_wash_policy(
    policy_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WashPolicyResponse:
    try:
        return await service.restore_policy(db, policy_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))
