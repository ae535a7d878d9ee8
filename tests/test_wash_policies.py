import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.wash_policies import service
from app.api.v1.wash_policies.schemas import WashPolicyCreate, WashPolicyUpdate
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import WashPolicy


async def _active_count(db: AsyncSession) -> int:
    result = await db.execute(select(func.count(WashPolicy.id)).where(WashPolicy.is_active.is_(True)))
    return result.scalar_one()


@pytest.mark.asyncio
async def test_create_active_policy_deactivates_previous(db_session: AsyncSession) -> None:
    first = await service.create_policy(
        db_session, WashPolicyCreate(name="Default", total_washes=30, max_weight_per_wash=7, is_active=True)
    )
    second = await service.create_policy(
        db_session, WashPolicyCreate(name="Winter", total_washes=40, max_weight_per_wash=5, is_active=True)
    )

    assert second.is_active is True
    assert (await service.get_policy(db_session, first.id)).is_active is False
    assert await _active_count(db_session) == 1
    active = await service.get_active(db_session)
    assert active.id == second.id


@pytest.mark.asyncio
async def test_activate_swaps_single_active_policy(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True)
    b = await make_policy(is_active=False)
    c = await make_policy(is_active=False)

    await service.activate_policy(db_session, b.id)
    assert await _active_count(db_session) == 1
    await service.activate_policy(db_session, c.id)
    assert await _active_count(db_session) == 1

    assert (await service.get_policy(db_session, a.id)).is_active is False
    assert (await service.get_policy(db_session, b.id)).is_active is False
    assert (await service.get_policy(db_session, c.id)).is_active is True


@pytest.mark.asyncio
async def test_activate_already_active_is_noop(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True)
    result = await service.activate_policy(db_session, a.id)
    assert result.is_active is True
    assert await _active_count(db_session) == 1


@pytest.mark.asyncio
async def test_deactivate_leaves_no_active_policy(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True)
    await service.deactivate_policy(db_session, a.id)
    assert await service.get_active(db_session) is None


def test_validation_of_policy_values() -> None:
    with pytest.raises(ValidationError):
        service.validate_policy_values(total_washes=-1)
    with pytest.raises(ValidationError):
        service.validate_policy_values(max_weight_per_wash=0.05)
    service.validate_policy_values(total_washes=0, max_weight_per_wash=0.1)


@pytest.mark.asyncio
async def test_update_does_not_touch_activation(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True, total_washes=30)
    updated = await service.update_policy(db_session, a.id, WashPolicyUpdate(total_washes=45))
    assert updated.total_washes == 45
    assert updated.max_weight_per_wash == 7.0
    assert updated.is_active is True


@pytest.mark.asyncio
async def test_archive_active_policy_reports_was_active(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True)

    result = await service.archive_policy(db_session, a.id)

    assert result.was_active is True
    assert result.policy.is_archived is True
    assert result.policy.is_active is False
    assert await service.get_active(db_session) is None


@pytest.mark.asyncio
async def test_archived_policy_cannot_be_activated_or_updated(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=False)
    await service.archive_policy(db_session, a.id)

    with pytest.raises(ConflictError):
        await service.activate_policy(db_session, a.id)
    with pytest.raises(ConflictError):
        await service.update_policy(db_session, a.id, WashPolicyUpdate(name="Renamed"))
    with pytest.raises(NotFoundError):
        await service.archive_policy(db_session, a.id)


@pytest.mark.asyncio
async def test_restore_brings_policy_back_inactive(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=True)
    await service.archive_policy(db_session, a.id)

    restored = await service.restore_policy(db_session, a.id)

    assert restored.is_archived is False
    assert restored.is_active is False
    with pytest.raises(NotFoundError):
        await service.restore_policy(db_session, a.id)


@pytest.mark.asyncio
async def test_list_hides_archived_by_default(db_session: AsyncSession, make_policy) -> None:
    a = await make_policy(is_active=False)
    b = await make_policy(is_active=False)
    await service.archive_policy(db_session, b.id)

    visible = await service.list_policies(db_session)
    everything = await service.list_policies(db_session, include_archived=True)

    assert [p.id for p in visible] == [a.id]
    assert {p.id for p in everything} == {a.id, b.id}


@pytest.mark.asyncio
async def test_policy_api_flow(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/wash-policies",
        json={"name": "Default Yearly Policy", "total_washes": 30, "max_weight_per_wash": 7, "is_active": True},
        headers=admin_headers,
    )
    assert response.status_code == 201
    policy_id = response.json()["id"]

    response = await client.get("/api/v1/wash-policies/active", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["id"] == policy_id

    response = await client.delete(f"/api/v1/wash-policies/{policy_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["was_active"] is True

    response = await client.post(f"/api/v1/wash-policies/{policy_id}/activate", headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_policy_api_rejects_small_weight(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/wash-policies",
        json={"name": "Tiny", "total_washes": 30, "max_weight_per_wash": 0.01},
        headers=admin_headers,
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_policy_api_requires_permission(client: AsyncClient, staff_headers) -> None:
    response = await client.post(
        "/api/v1/wash-policies",
        json={"name": "Default", "total_washes": 30, "max_weight_per_wash": 7},
        headers=staff_headers({"wash_policies": {"read": True}}),
    )
    assert response.status_code == 403

    response = await client.get("/api/v1/wash-policies", headers=staff_headers({"wash_policies": {"read": True}}))
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_policy_api_requires_token(client: AsyncClient) -> None:
    response = await client.get("/api/v1/wash-policies")
    assert response.status_code == 401
