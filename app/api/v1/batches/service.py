"""Batches: creation with year 1 dates, year window edits, archive/restore."""

from typing import List
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import Batch, BatchYear, Department

from .schemas import (
    BatchCreate,
    BatchResponse,
    BatchYearInput,
    BatchYearResponse,
    BatchYearsUpdate,
    YearWindowsCheckResponse,
)
from .year_windows import check_year_windows, validate_year_windows


def _to_response(batch: Batch) -> BatchResponse:
    duration = batch.department.duration_years
    return BatchResponse(
        id=batch.id,
        department_id=batch.department_id,
        department_name=batch.department.name,
        duration_years=duration,
        batch_label=batch.batch_label,
        start_year=batch.start_year,
        end_year=batch.end_year,
        current_year=batch.current_year,
        graduated=batch.current_year > duration,
        is_archived=batch.is_archived,
        years=[BatchYearResponse.model_validate(y) for y in batch.years if not y.is_archived],
        created_at=batch.created_at,
        updated_at=batch.updated_at,
    )


async def get_batch_model(db: AsyncSession, batch_id: UUID) -> Batch:
    """Load a batch with department and years, bypassing stale identity-map state."""
    result = await db.execute(
        select(Batch)
        .where(Batch.id == batch_id)
        .execution_options(populate_existing=True)
    )
    batch = result.unique().scalar_one_or_none()
    if not batch:
        raise NotFoundError("Batch not found")
    return batch


async def create_batch(db: AsyncSession, payload: BatchCreate) -> BatchResponse:
    """Create a batch; year 1 gets the given dates, years 2..duration are created undated."""
    if payload.start_year >= payload.end_year:
        raise ValidationError("End year must be after start year")

    department = await db.get(Department, payload.department_id)
    if not department or department.is_archived:
        raise NotFoundError("Department not found or has been archived")

    duration = payload.end_year - payload.start_year
    if duration != department.duration_years:
        raise ValidationError(
            f"Year range ({duration} years) does not match department duration "
            f"({department.duration_years} years)"
        )

    year_1 = BatchYearInput(year_no=1, start_date=payload.year_1_start_date, end_date=payload.year_1_end_date)
    check_year_windows([year_1])

    batch_label = f"{payload.start_year}-{payload.end_year}"
    existing = await db.execute(
        select(Batch.id).where(
            Batch.department_id == department.id,
            Batch.batch_label == batch_label,
        )
    )
    if existing.scalar_one_or_none():
        raise ConflictError(f'A batch with label "{batch_label}" already exists for this department')

    batch = Batch(
        department_id=department.id,
        batch_label=batch_label,
        start_year=payload.start_year,
        end_year=payload.end_year,
        current_year=1,
    )
    batch.years = [
        BatchYear(year_no=1, start_date=year_1.start_date, end_date=year_1.end_date),
        *[BatchYear(year_no=n) for n in range(2, department.duration_years + 1)],
    ]
    db.add(batch)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f'A batch with label "{batch_label}" already exists for this department')
    return _to_response(await get_batch_model(db, batch.id))


async def list_batches(db: AsyncSession, include_archived: bool = False) -> List[BatchResponse]:
    """Batches whose department is archived are left out."""
    stmt = select(Batch).join(Department, Batch.department_id == Department.id).where(
        Department.is_archived.is_(False)
    )
    if not include_archived:
        stmt = stmt.where(Batch.is_archived.is_(False))
    stmt = stmt.order_by(Batch.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(b) for b in result.unique().scalars().all()]


async def get_batch(db: AsyncSession, batch_id: UUID) -> BatchResponse:
    return _to_response(await get_batch_model(db, batch_id))


def _check_years_shape(batch: Batch, years: List[BatchYearInput]) -> None:
    current = [y for y in batch.years if not y.is_archived]
    if len(years) != len(current):
        raise ValidationError(f"Years array must contain exactly {len(current)} years")
    for position, year in enumerate(years, start=1):
        if year.year_no != position:
            raise ValidationError(f"Year at position {position} must have year_no {position}")


async def validate_batch_years(
    db: AsyncSession,
    batch_id: UUID,
    years: List[BatchYearInput],
) -> YearWindowsCheckResponse:
    """Dry run of a years edit: same checks as update_batch_years, nothing is saved."""
    batch = await get_batch_model(db, batch_id)
    _check_years_shape(batch, years)
    violation = validate_year_windows(years)
    if violation:
        return YearWindowsCheckResponse(
            ok=False,
            conflicting_years=violation.conflicting_years,
            message=violation.message,
        )
    return YearWindowsCheckResponse(ok=True)


async def update_batch_years(db: AsyncSession, batch_id: UUID, payload: BatchYearsUpdate) -> BatchResponse:
    batch = await get_batch_model(db, batch_id)
    if batch.is_archived:
        raise NotFoundError("Batch not found or has been archived")
    _check_years_shape(batch, payload.years)
    check_year_windows(payload.years)

    by_no = {y.year_no: y for y in batch.years if not y.is_archived}
    for year in payload.years:
        row = by_no[year.year_no]
        row.start_date = year.start_date
        row.end_date = year.end_date
    await db.commit()
    return _to_response(await get_batch_model(db, batch_id))


async def archive_batch(db: AsyncSession, batch_id: UUID) -> None:
    batch = await get_batch_model(db, batch_id)
    if batch.is_archived:
        raise NotFoundError("Batch not found or already archived")
    batch.is_archived = True
    await db.commit()


async def restore_batch(db: AsyncSession, batch_id: UUID) -> BatchResponse:
    batch = await get_batch_model(db, batch_id)
    if not batch.is_archived:
        raise NotFoundError("Archived batch not found")
    if batch.department.is_archived:
        raise ConflictError(
            "Cannot restore batch: associated department no longer exists or has been archived"
        )
    batch.is_archived = False
    await db.commit()
    return _to_response(await get_batch_model(db, batch_id))
