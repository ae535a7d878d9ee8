"""
Wash request lifecycle:
pickup_pending -> picked_up -> washing -> completed -> returned, cancelled from any non-terminal state.
Weighing debits the student's open allowance, or cancels the request when the washes do not fit.
"""

import logging
import math
from datetime import datetime
from decimal import ROUND_CEILING, Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.wash_allowances import service as ledger
from app.core.enums import (
    ACTIVE_REQUEST_STATUSES,
    NEXT_REQUEST_STATUS,
    AllowanceStatus,
    HostelStatus,
    WashRequestStatus,
)
from app.core.exceptions import (
    ConflictError,
    InsufficientAllowanceError,
    NotFoundError,
    ValidationError,
)
from app.core.models import Student, WashRequest

from .schemas import (
    WashRequestCreate,
    WashRequestPage,
    WashRequestResponse,
    WashRequestStats,
    WeightResult,
)

logger = logging.getLogger(__name__)

AUTO_CANCEL_REASON = "insufficient wash allowance"
ACTIVE_REQUEST_EXISTS = "active request exists"

# Statuses in which the bag can still be (re)weighed
WEIGHABLE_STATUSES = frozenset(
    {
        WashRequestStatus.pickup_pending,
        WashRequestStatus.picked_up,
        WashRequestStatus.washing,
        WashRequestStatus.completed,
    }
)
# Cancelling from these statuses gives the debited washes back; completed laundry has used them
REFUNDABLE_STATUSES = frozenset(
    {WashRequestStatus.pickup_pending, WashRequestStatus.picked_up, WashRequestStatus.washing}
)
# Requests in these statuses never hold a debit and may be deleted
DELETABLE_STATUSES = frozenset(
    {WashRequestStatus.pickup_pending, WashRequestStatus.picked_up, WashRequestStatus.cancelled}
)


def compute_wash_count(weight_kg: float, max_weight_per_wash: float) -> int:
    """ceil(weight / max weight per wash), in decimal so 1.1 / 0.1 is 11 and not 12."""
    ratio = Decimal(str(weight_kg)) / Decimal(str(max_weight_per_wash))
    return int(ratio.to_integral_value(rounding=ROUND_CEILING))


def _to_response(r: WashRequest) -> WashRequestResponse:
    return WashRequestResponse.model_validate(r)


async def _get_request(db: AsyncSession, request_id: UUID) -> WashRequest:
    result = await db.execute(
        select(WashRequest)
        .where(WashRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    req = result.scalar_one_or_none()
    if not req:
        raise NotFoundError("Wash request not found")
    return req


async def create_wash_request(
    db: AsyncSession,
    student_id: UUID,
    payload: WashRequestCreate,
) -> WashRequestResponse:
    """Open a request in pickup_pending. A student may hold only one non-terminal request."""
    cloth_count = payload.cloth_count or 0
    if cloth_count < 0:
        raise ValidationError("Cloth count cannot be negative")

    student = await db.get(Student, student_id)
    if not student or student.is_archived:
        raise NotFoundError("Student not found")
    if student.hostel_status != HostelStatus.active:
        raise ConflictError("Only students with an active hostel status can request washes")

    existing = await db.execute(
        select(WashRequest.id).where(
            WashRequest.student_id == student_id,
            WashRequest.status.in_(ACTIVE_REQUEST_STATUSES),
        ).limit(1)
    )
    if existing.scalar_one_or_none():
        raise ConflictError(ACTIVE_REQUEST_EXISTS)

    allowance = await ledger.get_open_allowance(db, student_id)
    if not allowance:
        raise NotFoundError("No active wash plan found. Please contact administration.")
    if allowance.remaining_washes <= 0:
        raise ConflictError(
            "You have used all your washes for this year. No remaining washes available.",
            detail={
                "total_washes": allowance.total_washes,
                "used_washes": allowance.used_washes,
                "remaining_washes": allowance.remaining_washes,
            },
        )

    req = WashRequest(
        student_id=student_id,
        cloth_count=cloth_count,
        notes=payload.notes.strip() if payload.notes else None,
        wash_count=0,
        status=WashRequestStatus.pickup_pending,
    )
    db.add(req)
    try:
        await db.commit()
    except IntegrityError:
        # Lost the race against a concurrent request of the same student
        await db.rollback()
        raise ConflictError(ACTIVE_REQUEST_EXISTS)
    await db.refresh(req)
    return _to_response(req)


async def _auto_cancel(
    db: AsyncSession,
    req: WashRequest,
    allowance_id: UUID,
    weight_kg: float,
    required: int,
    available: int,
) -> WeightResult:
    req.status = WashRequestStatus.cancelled
    req.cancellation_reason = AUTO_CANCEL_REASON
    req.weight_kg = weight_kg
    req.wash_count = 0
    req.allowance_id = allowance_id
    await db.commit()
    await db.refresh(req)
    logger.info(
        "Auto-cancelled wash request %s: %s washes required, %s available",
        req.id, required, available,
    )
    return WeightResult(
        request=_to_response(req),
        auto_cancelled=True,
        message="Insufficient washes - request auto-cancelled",
        required_washes=required,
        available_washes=available,
    )


async def record_weight(db: AsyncSession, request_id: UUID, weight_kg: float) -> WeightResult:
    """
    Weigh the laundry and debit ceil(weight / max_weight_per_wash) washes.
    A re-weigh credits the previous wash_count first. When the washes do not fit,
    the request is cancelled with AUTO_CANCEL_REASON and nothing stays debited.
    """
    if weight_kg is None or not math.isfinite(weight_kg) or weight_kg <= 0:
        raise ValidationError("Please provide valid weight (must be greater than 0)")

    req = await _get_request(db, request_id)
    if req.status not in WEIGHABLE_STATUSES:
        raise ConflictError(f"Cannot record weight for a request in '{req.status.value}' status")

    allowance = await ledger.get_open_allowance(db, req.student_id)
    if not allowance:
        raise NotFoundError("No active wash plan found for this student")
    if req.allowance_id is not None and req.allowance_id != allowance.id:
        raise ConflictError("The wash allowance this request was weighed against has been closed")

    new_count = compute_wash_count(weight_kg, allowance.max_weight_per_wash)
    previous_count = req.wash_count if req.allowance_id is not None else 0
    reweigh = previous_count > 0

    available = allowance.remaining_washes + previous_count

    if previous_count:
        await ledger.credit(db, allowance.id, previous_count)

    if new_count > available:
        return await _auto_cancel(db, req, allowance.id, weight_kg, new_count, available)
    try:
        allowance = await ledger.debit(db, allowance.id, new_count)
    except InsufficientAllowanceError as e:
        return await _auto_cancel(db, req, allowance.id, weight_kg, e.required, e.available)

    req.weight_kg = weight_kg
    req.wash_count = new_count
    req.allowance_id = allowance.id
    if req.status in (WashRequestStatus.pickup_pending, WashRequestStatus.picked_up):
        req.status = WashRequestStatus.washing
    await db.commit()
    await db.refresh(req)
    return WeightResult(
        request=_to_response(req),
        auto_cancelled=False,
        message="Weight updated and wash count recalculated successfully" if reweigh else "Weight added successfully",
        required_washes=new_count,
        available_washes=allowance.remaining_washes,
    )


async def _refund(db: AsyncSession, req: WashRequest) -> None:
    """Give a cancelled request's washes back while its allowance is still open."""
    if not req.allowance_id or not req.wash_count:
        return
    allowance = await ledger.get_allowance(db, req.allowance_id)
    if allowance.status != AllowanceStatus.open:
        logger.info("Not refunding wash request %s: allowance %s is closed", req.id, allowance.id)
        return
    await ledger.credit(db, allowance.id, req.wash_count)


async def set_request_status(
    db: AsyncSession,
    request_id: UUID,
    new_status: WashRequestStatus,
    reason: Optional[str] = None,
) -> WashRequestResponse:
    """Move one step forward, or cancel. Nothing leaves returned or cancelled."""
    req = await _get_request(db, request_id)
    current = req.status
    if current.is_terminal:
        raise ConflictError(f"Cannot modify {current.value} request")
    if new_status == current:
        return _to_response(req)

    if new_status == WashRequestStatus.cancelled:
        reason = reason.strip() if reason else None
        if not reason and not req.cancellation_reason:
            raise ValidationError("Please provide cancellation reason")
        if current in REFUNDABLE_STATUSES:
            await _refund(db, req)
        req.status = WashRequestStatus.cancelled
        if reason:
            req.cancellation_reason = reason
    else:
        expected = NEXT_REQUEST_STATUS[current]
        if new_status != expected:
            raise ConflictError(
                f"Invalid status transition from '{current.value}' to '{new_status.value}'"
            )
        req.status = new_status
        if new_status == WashRequestStatus.returned:
            req.returned_date = datetime.utcnow()

    await db.commit()
    await db.refresh(req)
    logger.info("Wash request %s moved from %s to %s", req.id, current.value, req.status.value)
    return _to_response(req)


async def get_wash_request(db: AsyncSession, request_id: UUID) -> WashRequestResponse:
    return _to_response(await _get_request(db, request_id))


async def get_student_wash_request(db: AsyncSession, student_id: UUID, request_id: UUID) -> WashRequestResponse:
    req = await _get_request(db, request_id)
    if req.student_id != student_id:
        raise NotFoundError("Wash request not found")
    return _to_response(req)


async def list_my_wash_requests(db: AsyncSession, student_id: UUID) -> List[WashRequestResponse]:
    result = await db.execute(
        select(WashRequest)
        .where(WashRequest.student_id == student_id)
        .order_by(WashRequest.created_at.desc())
    )
    return [_to_response(r) for r in result.scalars().all()]


async def list_wash_requests(
    db: AsyncSession,
    status_filter: Optional[WashRequestStatus] = None,
    student_id: Optional[UUID] = None,
    page: int = 1,
    limit: int = 20,
) -> WashRequestPage:
    filters = []
    if status_filter is not None:
        filters.append(WashRequest.status == status_filter)
    if student_id is not None:
        filters.append(WashRequest.student_id == student_id)

    total = (await db.execute(select(func.count(WashRequest.id)).where(*filters))).scalar_one()
    result = await db.execute(
        select(WashRequest)
        .where(*filters)
        .order_by(WashRequest.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return WashRequestPage(
        items=[_to_response(r) for r in result.scalars().all()],
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if total else 0,
    )


async def get_wash_request_stats(db: AsyncSession) -> WashRequestStats:
    result = await db.execute(
        select(WashRequest.status, func.count(WashRequest.id)).group_by(WashRequest.status)
    )
    stats = WashRequestStats()
    for status_value, count in result.all():
        setattr(stats, WashRequestStatus(status_value).value, count)
        stats.total += count
    return stats


async def delete_wash_request(db: AsyncSession, request_id: UUID) -> None:
    """Only requests that never kept a debit can be deleted; others must be cancelled or returned."""
    req = await _get_request(db, request_id)
    if req.status not in DELETABLE_STATUSES:
        raise ConflictError(
            f"Cannot delete wash request in '{req.status.value}' status. "
            "Washes have already been deducted. Please cancel or return the request instead.",
            detail={"status": req.status.value, "wash_count": req.wash_count},
        )
    await db.delete(req)
    await db.commit()
