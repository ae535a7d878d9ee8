from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import StudentCreate, StudentResponse, StudentUpdate
from . import service

router = APIRouter(prefix="/api/v1/students", tags=["students"])


@router.post(
    "",
    response_model=StudentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("students", "create"))],
)
async def create_student(
    payload: StudentCreate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    """Create a student. Set create_allowance to open the current-year wash allowance from the active policy."""
    try:
        return await service.create_student(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get(
    "",
    response_model=List[StudentResponse],
    dependencies=[Depends(check_permission("students", "read"))],
)
async def list_students(
    batch_id: Optional[UUID] = Query(None),
    include_archived: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[StudentResponse]:
    return await service.list_students(db, batch_id=batch_id, include_archived=include_archived)


@router.get(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "read"))],
)
async def get_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.get_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{student_id}",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "update"))],
)
async def update_student(
    student_id: UUID,
    payload: StudentUpdate,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.update_student(db, student_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.delete(
    "/{student_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(check_permission("students", "delete"))],
)
async def archive_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> None:
    try:
        await service.archive_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.put(
    "/{student_id}/restore",
    response_model=StudentResponse,
    dependencies=[Depends(check_permission("students", "update"))],
)
async def restore_student(
    student_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> StudentResponse:
    try:
        return await service.restore_student(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))
