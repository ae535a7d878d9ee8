from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError
from app.core.models import Department

from .schemas import DepartmentCreate, DepartmentDropdownItem, DepartmentResponse


def _to_response(dept: Department) -> DepartmentResponse:
    return DepartmentResponse(
        id=dept.id,
        name=dept.name,
        duration_years=dept.duration_years,
        is_archived=dept.is_archived,
        created_at=dept.created_at,
        updated_at=dept.updated_at,
    )


async def create_department(db: AsyncSession, payload: DepartmentCreate) -> DepartmentResponse:
    dept = Department(name=payload.name.strip(), duration_years=payload.duration_years)
    db.add(dept)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Department name already exists")
    await db.refresh(dept)
    return _to_response(dept)


async def list_departments(db: AsyncSession, include_archived: bool = False) -> List[DepartmentResponse]:
    stmt = select(Department)
    if not include_archived:
        stmt = stmt.where(Department.is_archived.is_(False))
    stmt = stmt.order_by(Department.name)
    result = await db.execute(stmt)
    return [_to_response(d) for d in result.scalars().all()]


async def get_department(db: AsyncSession, department_id: UUID) -> Optional[DepartmentResponse]:
    dept = await db.get(Department, department_id)
    return _to_response(dept) if dept else None


async def get_department_dropdown(db: AsyncSession) -> List[DepartmentDropdownItem]:
    result = await db.execute(
        select(Department.id, Department.name)
        .where(Department.is_archived.is_(False))
        .order_by(Department.name)
    )
    return [DepartmentDropdownItem(label=name, value=id_) for id_, name in result.all()]
