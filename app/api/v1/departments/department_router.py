from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import ServiceError, error_detail
from app.db.session import get_db

from .schemas import DepartmentCreate, DepartmentDropdownItem, DepartmentResponse
from . import service

router = APIRouter(prefix="/api/v1/departments", tags=["departments"])


@router.post(
    "",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(check_permission("departments", "create"))],
)
async def create_department(
    payload: DepartmentCreate,
    db: AsyncSession = Depends(get_db),
) -> DepartmentResponse:
    try:
        return await service.create_department(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=error_detail(e))


@router.get(
    "",
    response_model=List[DepartmentResponse],
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def list_departments(
    include_archived: bool = Query(False),
    db: AsyncSession = Depends(get_db),
) -> List[DepartmentResponse]:
    return await service.list_departments(db, include_archived=include_archived)


@router.get(
    "/dropdown",
    response_model=List[DepartmentDropdownItem],
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def department_dropdown(
    db: AsyncSession = Depends(get_db),
) -> List[DepartmentDropdownItem]:
    return await service.get_department_dropdown(db)


@router.get(
    "/{department_id}",
    response_model=DepartmentResponse,
    dependencies=[Depends(check_permission("departments", "read"))],
)
async def get_department(
    department_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> DepartmentResponse:
    dept = await service.get_department(db, department_id)
    if not dept:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Department not found")
    return dept
