"""Wash policies: CRUD, archive/restore and the single-active-policy swap."""

import logging
from typing import List, Optional
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import WashPolicy

from .schemas import (
    MIN_WEIGHT_PER_WASH,
    ArchivePolicyResponse,
    PolicySnapshot,
    WashPolicyCreate,
    WashPolicyResponse,
    WashPolicyUpdate,
)

logger = logging.getLogger(__name__)

CONCURRENT_ACTIVATION_MESSAGE = "Another policy was activated at the same time; retry the activation"


def _to_response(p: WashPolicy) -> WashPolicyResponse:
    return WashPolicyResponse(
        id=p.id,
        name=p.name,
        total_washes=p.total_washes,
        max_weight_per_wash=p.max_weight_per_wash,
        is_active=p.is_active,
        is_archived=p.is_archived,
        created_at=p.created_at,
        updated_at=p.updated_at,
    )


def validate_policy_values(total_washes=None, max_weight_per_wash=None) -> None:
    """Bounds shared by policies and promotion overrides. None means "not supplied"."""
    if total_washes is not None:
        if isinstance(total_washes, bool) or not isinstance(total_washes, int) or total_washes < 0:
            raise ValidationError("Total washes must be a non-negative integer")
    if max_weight_per_wash is not None:
        if isinstance(max_weight_per_wash, bool) or max_weight_per_wash < MIN_WEIGHT_PER_WASH:
            raise ValidationError("Maximum weight per wash must be at least 0.1 kg")


def snapshot_of(policy: WashPolicy) -> PolicySnapshot:
    return PolicySnapshot(
        total_washes=policy.total_washes,
        max_weight_per_wash=policy.max_weight_per_wash,
        policy_id=policy.id,
    )


async def _get_policy(db: AsyncSession, policy_id: UUID) -> WashPolicy:
    policy = await db.get(WashPolicy, policy_id, populate_existing=True)
    if not policy:
        raise NotFoundError("Wash policy not found")
    return policy


async def _swap_active(db: AsyncSession, policy_id: UUID) -> None:
    """Deactivate every other policy and activate policy_id inside the caller's transaction."""
    await db.execute(
        update(WashPolicy)
        .where(WashPolicy.is_active.is_(True), WashPolicy.id != policy_id)
        .values(is_active=False)
    )
    result = await db.execute(
        update(WashPolicy)
        .where(WashPolicy.id == policy_id, WashPolicy.is_archived.is_(False))
        .values(is_active=True)
    )
    if result.rowcount == 0:
        raise ConflictError("Archived policy cannot be activated")


async def create_policy(db: AsyncSession, payload: WashPolicyCreate) -> WashPolicyResponse:
    validate_policy_values(payload.total_washes, payload.max_weight_per_wash)
    policy = WashPolicy(
        name=payload.name.strip(),
        total_washes=payload.total_washes,
        max_weight_per_wash=payload.max_weight_per_wash,
        is_active=False,
        is_archived=False,
    )
    db.add(policy)
    try:
        await db.flush()
        if payload.is_active:
            await _swap_active(db, policy.id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(CONCURRENT_ACTIVATION_MESSAGE)
    await db.refresh(policy)
    logger.info("Created wash policy %s (active=%s)", policy.id, policy.is_active)
    return _to_response(policy)


async def list_policies(db: AsyncSession, include_archived: bool = False) -> List[WashPolicyResponse]:
    stmt = select(WashPolicy)
    if not include_archived:
        stmt = stmt.where(WashPolicy.is_archived.is_(False))
    stmt = stmt.order_by(WashPolicy.created_at.desc())
    result = await db.execute(stmt)
    return [_to_response(p) for p in result.scalars().all()]


async def get_policy(db: AsyncSession, policy_id: UUID) -> WashPolicyResponse:
    return _to_response(await _get_policy(db, policy_id))


async def get_active_policy(db: AsyncSession) -> Optional[WashPolicy]:
    """The single active, non-archived policy, or None."""
    result = await db.execute(
        select(WashPolicy).where(
            WashPolicy.is_active.is_(True),
            WashPolicy.is_archived.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def get_active(db: AsyncSession) -> Optional[WashPolicyResponse]:
    policy = await get_active_policy(db)
    return _to_response(policy) if policy else None


async def update_policy(db: AsyncSession, policy_id: UUID, payload: WashPolicyUpdate) -> WashPolicyResponse:
    policy = await _get_policy(db, policy_id)
    if policy.is_archived:
        raise ConflictError("Archived policy cannot be updated; restore it first")
    validate_policy_values(payload.total_washes, payload.max_weight_per_wash)
    if payload.name is not None:
        policy.name = payload.name.strip()
    if payload.total_washes is not None:
        policy.total_washes = payload.total_washes
    if payload.max_weight_per_wash is not None:
        policy.max_weight_per_wash = payload.max_weight_per_wash
    await db.commit()
    await db.refresh(policy)
    return _to_response(policy)


async def activate_policy(db: AsyncSession, policy_id: UUID) -> WashPolicyResponse:
    policy = await _get_policy(db, policy_id)
    if policy.is_archived:
        raise ConflictError("Archived policy cannot be activated")
    if not policy.is_active:
        try:
            await _swap_active(db, policy.id)
            await db.commit()
        except IntegrityError:
            await db.rollback()
            raise ConflictError(CONCURRENT_ACTIVATION_MESSAGE)
        logger.info("Activated wash policy %s", policy.id)
    await db.refresh(policy)
    return _to_response(policy)


async def deactivate_policy(db: AsyncSession, policy_id: UUID) -> WashPolicyResponse:
    policy = await _get_policy(db, policy_id)
    policy.is_active = False
    await db.commit()
    await db.refresh(policy)
    return _to_response(policy)


async def archive_policy(db: AsyncSession, policy_id: UUID) -> ArchivePolicyResponse:
    """Soft delete. Archiving the active policy is allowed and leaves no active policy."""
    policy = await _get_policy(db, policy_id)
    if policy.is_archived:
        raise NotFoundError("Policy not found or has already been archived")
    was_active = policy.is_active
    policy.is_archived = True
    policy.is_active = False
    await db.commit()
    await db.refresh(policy)
    if was_active:
        logger.warning("Archived the active wash policy %s; no policy is active now", policy.id)
        message = "Wash policy archived; no wash policy is active now"
    else:
        message = "Wash policy archived successfully"
    return ArchivePolicyResponse(policy=_to_response(policy), was_active=was_active, message=message)


async def restore_policy(db: AsyncSession, policy_id: UUID) -> WashPolicyResponse:
    """Un-archive a policy. It comes back inactive."""
    policy = await _get_policy(db, policy_id)
    if not policy.is_archived:
        raise NotFoundError("Archived policy not found")
    policy.is_archived = False
    await db.commit()
    await db.refresh(policy)
    return _to_response(policy)
