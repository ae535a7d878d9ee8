import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.batches import promotion
from app.api.v1.batches.service import get_batch_model
from app.core.exceptions import ConflictError, NotFoundError, ServiceError
from app.core.models import Batch, Student

from .schemas import StudentCreate, StudentResponse, StudentUpdate

logger = logging.getLogger(__name__)


def _to_response(student: Student, allowance_id: Optional[UUID] = None) -> StudentResponse:
    response = StudentResponse.model_validate(student)
    response.allowance_id = allowance_id
    return response


async def _get_student_model(db: AsyncSession, student_id: UUID) -> Student:
    student = await db.get(Student, student_id, populate_existing=True)
    if not student:
        raise NotFoundError("Student not found")
    return student


async def _registration_taken(db: AsyncSession, registration_number: str) -> bool:
    result = await db.execute(
        select(Student.id).where(Student.registration_number == registration_number)
    )
    return result.scalar_one_or_none() is not None


async def create_student(db: AsyncSession, payload: StudentCreate) -> StudentResponse:
    """
    Register a student in a batch. With create_allowance the current-year allowance is created
    in the same transaction from the active policy.
    """
    batch = await get_batch_model(db, payload.batch_id)
    if batch.is_archived:
        raise NotFoundError("Batch not found or has been archived")
    if batch.current_year > batch.department.duration_years:
        raise ConflictError("Batch has already graduated")
    if await _registration_taken(db, payload.registration_number):
        raise ConflictError("Registration number already exists")

    snapshot = await promotion.resolve_snapshot(db, None) if payload.create_allowance else None

    student = Student(
        batch_id=batch.id,
        name=payload.name,
        registration_number=payload.registration_number,
        hostel_status=payload.hostel_status,
    )
    db.add(student)
    allowance_id = None
    try:
        await db.flush()
        if snapshot is not None:
            allowance = await promotion.provision_student(db, batch, student, batch.current_year, snapshot)
            allowance_id = allowance.id
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Registration number already exists")
    except ServiceError:
        await db.rollback()
        raise
    await db.refresh(student)
    logger.info("Created student %s in batch %s (allowance=%s)", student.id, batch.id, allowance_id)
    return _to_response(student, allowance_id)


async def list_students(
    db: AsyncSession,
    batch_id: Optional[UUID] = None,
    include_archived: bool = False,
) -> List[StudentResponse]:
    stmt = select(Student)
    if batch_id is not None:
        stmt = stmt.where(Student.batch_id == batch_id)
    if not include_archived:
        stmt = stmt.where(Student.is_archived.is_(False))
    result = await db.execute(stmt.order_by(Student.registration_number))
    return [_to_response(s) for s in result.scalars().all()]


async def get_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    return _to_response(await _get_student_model(db, student_id))


async def update_student(db: AsyncSession, student_id: UUID, payload: StudentUpdate) -> StudentResponse:
    """Rename or change hostel status. Dropped and completed students leave promotion."""
    student = await _get_student_model(db, student_id)
    if student.is_archived:
        raise NotFoundError("Student not found or has been archived")
    data = payload.model_dump(exclude_unset=True, exclude_none=True)
    for key, value in data.items():
        setattr(student, key, value)
    await db.commit()
    await db.refresh(student)
    if "hostel_status" in data:
        logger.info("Student %s hostel status set to %s", student.id, student.hostel_status.value)
    return _to_response(student)


async def archive_student(db: AsyncSession, student_id: UUID) -> None:
    student = await _get_student_model(db, student_id)
    if student.is_archived:
        raise NotFoundError("Student not found or already archived")
    student.is_archived = True
    await db.commit()


async def restore_student(db: AsyncSession, student_id: UUID) -> StudentResponse:
    student = await _get_student_model(db, student_id)
    if not student.is_archived:
        raise NotFoundError("Archived student not found")
    batch = await db.get(Batch, student.batch_id)
    if not batch or batch.is_archived:
        raise ConflictError("Cannot restore student: batch no longer exists or has been archived")
    student.is_archived = False
    await db.commit()
    await db.refresh(student)
    return _to_response(student)
