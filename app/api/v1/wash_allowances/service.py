"""
Wash allowance ledger. Counters move only through single conditional UPDATE statements so that
0 <= used_washes <= total_washes holds under concurrent writers.

create_for_student, debit, credit and close flush but never commit: the calling operation
(wash request, promotion, student creation) owns the transaction.
"""

import logging
from datetime import date, datetime
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.wash_policies.schemas import PolicySnapshot
from app.api.v1.wash_policies.service import validate_policy_values
from app.core.enums import AllowanceStatus
from app.core.exceptions import ConflictError, InsufficientAllowanceError, NotFoundError, ValidationError
from app.core.models import WashAllowance

from .schemas import WashAllowanceResponse

logger = logging.getLogger(__name__)


def _to_response(a: WashAllowance) -> WashAllowanceResponse:
    return WashAllowanceResponse.model_validate(a)


def _validate_count(count) -> None:
    if isinstance(count, bool) or not isinstance(count, int) or count <= 0:
        raise ValidationError("Wash count must be a positive integer")


async def _reload(db: AsyncSession, allowance_id: UUID) -> Optional[WashAllowance]:
    result = await db.execute(
        select(WashAllowance)
        .where(WashAllowance.id == allowance_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_allowance(db: AsyncSession, allowance_id: UUID) -> WashAllowance:
    allowance = await _reload(db, allowance_id)
    if not allowance:
        raise NotFoundError("Wash allowance not found")
    return allowance


async def get_open_allowance(db: AsyncSession, student_id: UUID) -> Optional[WashAllowance]:
    """The student's open allowance; the latest year wins if more than one is open."""
    result = await db.execute(
        select(WashAllowance)
        .where(
            WashAllowance.student_id == student_id,
            WashAllowance.status == AllowanceStatus.open,
        )
        .order_by(WashAllowance.year_no.desc())
        .limit(1)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def find_allowance(db: AsyncSession, student_id: UUID, year_no: int) -> Optional[WashAllowance]:
    result = await db.execute(
        select(WashAllowance).where(
            WashAllowance.student_id == student_id,
            WashAllowance.year_no == year_no,
        )
    )
    return result.scalar_one_or_none()


async def create_for_student(
    db: AsyncSession,
    student_id: UUID,
    batch_id: UUID,
    year_no: int,
    snapshot: PolicySnapshot,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> WashAllowance:
    """
    Open an allowance for (student, year_no) from a policy snapshot.
    Returns the existing row when one is already there, so retried promotions do not duplicate.
    """
    validate_policy_values(snapshot.total_washes, snapshot.max_weight_per_wash)
    if start_date and end_date and end_date <= start_date:
        raise ValidationError("End date must be after start date")

    existing = await find_allowance(db, student_id, year_no)
    if existing:
        return existing

    allowance = WashAllowance(
        student_id=student_id,
        batch_id=batch_id,
        year_no=year_no,
        policy_id=snapshot.policy_id,
        total_washes=snapshot.total_washes,
        max_weight_per_wash=snapshot.max_weight_per_wash,
        used_washes=0,
        remaining_washes=snapshot.total_washes,
        status=AllowanceStatus.open,
        start_date=start_date,
        end_date=end_date,
    )
    db.add(allowance)
    await db.flush()
    return allowance


async def debit(db: AsyncSession, allowance_id: UUID, count: int) -> WashAllowance:
    """Consume count washes. InsufficientAllowanceError when they do not fit the remaining washes."""
    _validate_count(count)
    result = await db.execute(
        update(WashAllowance)
        .where(
            WashAllowance.id == allowance_id,
            WashAllowance.status == AllowanceStatus.open,
            WashAllowance.used_washes + count <= WashAllowance.total_washes,
        )
        .values(
            used_washes=WashAllowance.used_washes + count,
            remaining_washes=WashAllowance.remaining_washes - count,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    allowance = await get_allowance(db, allowance_id)
    if result.rowcount == 0:
        if allowance.status == AllowanceStatus.closed:
            raise ConflictError("Wash allowance is closed")
        raise InsufficientAllowanceError(required=count, available=allowance.remaining_washes)
    return allowance


async def credit(db: AsyncSession, allowance_id: UUID, count: int) -> WashAllowance:
    """Give back count previously debited washes."""
    _validate_count(count)
    result = await db.execute(
        update(WashAllowance)
        .where(
            WashAllowance.id == allowance_id,
            WashAllowance.status == AllowanceStatus.open,
            WashAllowance.used_washes - count >= 0,
        )
        .values(
            used_washes=WashAllowance.used_washes - count,
            remaining_washes=WashAllowance.remaining_washes + count,
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    allowance = await get_allowance(db, allowance_id)
    if result.rowcount == 0:
        if allowance.status == AllowanceStatus.closed:
            raise ConflictError("Wash allowance is closed")
        raise ValidationError(
            f"Cannot credit {count} washes; only {allowance.used_washes} have been used"
        )
    return allowance


async def close(db: AsyncSession, allowance_id: UUID, end_date: Optional[date] = None) -> WashAllowance:
    """Close an allowance. Closing an already closed allowance is a no-op."""
    end = end_date or date.today()
    await db.execute(
        update(WashAllowance)
        .where(
            WashAllowance.id == allowance_id,
            WashAllowance.status == AllowanceStatus.open,
        )
        .values(
            status=AllowanceStatus.closed,
            closed_at=datetime.utcnow(),
            end_date=func.coalesce(WashAllowance.end_date, end),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return await get_allowance(db, allowance_id)


async def close_allowance(db: AsyncSession, allowance_id: UUID) -> WashAllowanceResponse:
    """Explicit closure outside of promotion."""
    allowance = await close(db, allowance_id)
    await db.commit()
    logger.info("Closed wash allowance %s", allowance_id)
    return _to_response(allowance)


async def get_allowance_response(db: AsyncSession, allowance_id: UUID) -> WashAllowanceResponse:
    return _to_response(await get_allowance(db, allowance_id))


async def get_my_allowance(db: AsyncSession, student_id: UUID) -> WashAllowanceResponse:
    allowance = await get_open_allowance(db, student_id)
    if not allowance:
        raise NotFoundError("No active wash plan found")
    return _to_response(allowance)


async def list_student_allowances(db: AsyncSession, student_id: UUID) -> List[WashAllowanceResponse]:
    result = await db.execute(
        select(WashAllowance)
        .where(WashAllowance.student_id == student_id)
        .order_by(WashAllowance.year_no.desc())
    )
    return [_to_response(a) for a in result.scalars().all()]
