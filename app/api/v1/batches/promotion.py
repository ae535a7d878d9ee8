"""
Year-end promotion of a batch.

Run as a saga: closing the current year's allowances is committed before next-year allowances
are created; a student whose allowance cannot be created is reported in `failed` and the others
carry on. The batch year advance is the source of truth and is not rolled back for such failures.
`provision_allowances` is the operator retry for those students.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.wash_allowances import service as ledger
from app.api.v1.wash_policies.schemas import PolicySnapshot
from app.api.v1.wash_policies.service import get_active_policy, snapshot_of, validate_policy_values
from app.core.config import settings
from app.core.enums import AllowanceStatus, HostelStatus
from app.core.exceptions import ConflictError, ServiceError, ValidationError
from app.core.models import Batch, BatchYear, Student, WashAllowance

from .schemas import (
    PromotionFailure,
    PromotionOptions,
    PromotionResult,
    ProvisionedStudent,
    ProvisionRequest,
    ProvisionResult,
)
from .service import get_batch_model

logger = logging.getLogger(__name__)


async def resolve_snapshot(db: AsyncSession, options: Optional[PromotionOptions] = None) -> PolicySnapshot:
    """Override values when requested, otherwise the active policy."""
    if options is not None and options.use_policy_override:
        if options.total_washes is None or options.max_weight_per_wash is None:
            raise ValidationError("Policy override requires total_washes and max_weight_per_wash")
        validate_policy_values(options.total_washes, options.max_weight_per_wash)
        return PolicySnapshot(
            total_washes=options.total_washes,
            max_weight_per_wash=options.max_weight_per_wash,
        )
    policy = await get_active_policy(db)
    if not policy:
        raise ConflictError("No active wash policy. Activate a policy or supply an override")
    return snapshot_of(policy)


def _year(batch: Batch, year_no: int) -> Optional[BatchYear]:
    return next((y for y in batch.years if y.year_no == year_no and not y.is_archived), None)


async def eligible_students(db: AsyncSession, batch_id: UUID) -> Sequence[Student]:
    result = await db.execute(
        select(Student)
        .where(
            Student.batch_id == batch_id,
            Student.is_archived.is_(False),
            Student.hostel_status == HostelStatus.active,
        )
        .order_by(Student.registration_number)
    )
    return result.scalars().all()


def _failure_reason(e: Exception) -> str:
    if isinstance(e, ServiceError):
        return e.message
    return f"Could not create wash allowance ({e.__class__.__name__})"


async def provision_student(
    db: AsyncSession,
    batch: Batch,
    student: Student,
    year_no: int,
    snapshot: PolicySnapshot,
) -> WashAllowance:
    """Create (or find) the student's allowance for year_no, dated from the batch year when set."""
    year = _year(batch, year_no)
    return await ledger.create_for_student(
        db,
        student_id=student.id,
        batch_id=batch.id,
        year_no=year_no,
        snapshot=snapshot,
        start_date=year.start_date if year else None,
        end_date=year.end_date if year else None,
    )


async def _provision_each(
    db: AsyncSession,
    batch: Batch,
    students: Sequence[Student],
    year_no: int,
    snapshot: PolicySnapshot,
) -> Tuple[List[ProvisionedStudent], List[PromotionFailure]]:
    provisioned: List[ProvisionedStudent] = []
    failed: List[PromotionFailure] = []
    for student in students:
        try:
            async with db.begin_nested():
                allowance = await provision_student(db, batch, student, year_no, snapshot)
                if allowance.status != AllowanceStatus.open:
                    raise ConflictError(f"Wash allowance for year {year_no} is already closed")
        except (ServiceError, SQLAlchemyError) as e:
            reason = _failure_reason(e)
            logger.warning(
                "Could not provision year %s allowance for student %s of batch %s: %s",
                year_no, student.id, batch.id, reason,
            )
            failed.append(PromotionFailure(student_id=student.id, reason=reason))
            continue
        provisioned.append(
            ProvisionedStudent(
                id=student.id,
                name=student.name,
                registration_number=student.registration_number,
                allowance_id=allowance.id,
            )
        )
    return provisioned, failed


async def _close_year(db: AsyncSession, batch: Batch, students: Sequence[Student], year_no: int) -> int:
    """Close every open allowance of these students for year_no. Unused washes are not carried over."""
    if not students:
        return 0
    result = await db.execute(
        select(WashAllowance.id).where(
            WashAllowance.student_id.in_([s.id for s in students]),
            WashAllowance.year_no == year_no,
            WashAllowance.status == AllowanceStatus.open,
        )
    )
    allowance_ids = result.scalars().all()
    year = _year(batch, year_no)
    for allowance_id in allowance_ids:
        await ledger.close(db, allowance_id, end_date=year.end_date if year else None)
    return len(allowance_ids)


def _stale_claim_cutoff() -> datetime:
    return datetime.utcnow() - timedelta(minutes=settings.promotion_claim_timeout_minutes)


def _claim_is_live(batch: Batch) -> bool:
    """A claim left behind by a crashed worker stops blocking once it passes the timeout."""
    if not batch.is_promoting:
        return False
    started = batch.promotion_started_at
    if started is None:
        return True
    if started.tzinfo is not None:
        started = started.astimezone(timezone.utc).replace(tzinfo=None)
    return started > _stale_claim_cutoff()


async def _release_claim(db: AsyncSession, batch_id: UUID) -> None:
    await db.execute(
        update(Batch)
        .where(Batch.id == batch_id)
        .values(is_promoting=False, promotion_started_at=None)
        .execution_options(synchronize_session=False)
    )
    await db.commit()


async def promote_batch(db: AsyncSession, batch_id: UUID, options: PromotionOptions) -> PromotionResult:
    """
    Advance the batch one academic year: close the current year's allowances, then open next-year
    allowances for every active student, or mark graduation when the department duration is exceeded.
    """
    batch = await get_batch_model(db, batch_id)
    if batch.is_archived:
        raise ConflictError("Archived batch cannot be promoted")
    duration = batch.department.duration_years
    previous_year = batch.current_year
    if previous_year > duration:
        raise ConflictError("Batch has already graduated")

    target_year = previous_year + 1
    graduated = target_year > duration
    snapshot = None if graduated else await resolve_snapshot(db, options)

    claim = await db.execute(
        update(Batch)
        .where(
            Batch.id == batch_id,
            or_(
                Batch.is_promoting.is_(False),
                Batch.promotion_started_at < _stale_claim_cutoff(),
            ),
            Batch.current_year == previous_year,
        )
        .values(is_promoting=True, promotion_started_at=datetime.utcnow())
        .execution_options(synchronize_session=False)
    )
    if claim.rowcount == 0:
        await db.rollback()
        raise ConflictError("Batch promotion is already in progress")
    await db.commit()

    try:
        students = await eligible_students(db, batch_id)
        closed_count = await _close_year(db, batch, students, previous_year)
        await db.commit()

        promoted: List[ProvisionedStudent] = []
        failed: List[PromotionFailure] = []
        if not graduated:
            promoted, failed = await _provision_each(db, batch, students, target_year, snapshot)

        await db.execute(
            update(Batch)
            .where(Batch.id == batch_id)
            .values(
                current_year=target_year,
                is_promoting=False,
                promotion_started_at=None,
                updated_at=datetime.utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        await db.commit()
    except BaseException:
        # Includes cancellation: a disconnected client must not leave the batch claimed
        await db.rollback()
        await _release_claim(db, batch_id)
        raise

    logger.info(
        "Promoted batch %s from year %s to %s (graduated=%s, closed=%s, promoted=%s, failed=%s)",
        batch_id, previous_year, target_year, graduated, closed_count, len(promoted), len(failed),
    )
    return PromotionResult(
        batch_id=batch_id,
        previous_year=previous_year,
        current_year=target_year,
        graduated=graduated,
        closed_count=closed_count,
        promoted=promoted,
        failed=failed,
    )


async def provision_allowances(db: AsyncSession, batch_id: UUID, payload: ProvisionRequest) -> ProvisionResult:
    """Create missing current-year allowances, e.g. for students listed in a promotion's `failed`."""
    batch = await get_batch_model(db, batch_id)
    if batch.is_archived:
        raise ConflictError("Archived batch cannot be provisioned")
    if batch.current_year > batch.department.duration_years:
        raise ConflictError("Graduated batch has no current year to provision")
    if _claim_is_live(batch):
        raise ConflictError("Batch promotion is in progress")

    snapshot = await resolve_snapshot(db, payload)
    students = list(await eligible_students(db, batch_id))
    failed: List[PromotionFailure] = []
    if payload.student_ids is not None:
        wanted = set(payload.student_ids)
        found = {s.id for s in students}
        failed.extend(
            PromotionFailure(student_id=sid, reason="Student is not an active member of this batch")
            for sid in payload.student_ids
            if sid not in found
        )
        students = [s for s in students if s.id in wanted]

    provisioned, provision_failed = await _provision_each(db, batch, students, batch.current_year, snapshot)
    await db.commit()
    return ProvisionResult(
        batch_id=batch_id,
        year_no=batch.current_year,
        provisioned=provisioned,
        failed=failed + provision_failed,
    )
