from datetime import date

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.batches import service
from app.api.v1.batches.schemas import BatchCreate, BatchYearInput, BatchYearsUpdate
from app.core.exceptions import ConflictError, NotFoundError, ValidationError
from app.core.models import Department


async def _department(db: AsyncSession, duration_years: int = 4, name: str = "Computer Science") -> Department:
    dept = Department(name=name, duration_years=duration_years)
    db.add(dept)
    await db.commit()
    return dept


def _create_payload(department_id, start_year=2024, end_year=2028) -> BatchCreate:
    return BatchCreate(
        department_id=department_id,
        start_year=start_year,
        end_year=end_year,
        year_1_start_date=date(start_year, 7, 1),
        year_1_end_date=date(start_year + 1, 5, 31),
    )


@pytest.mark.asyncio
async def test_create_batch_builds_years(db_session: AsyncSession) -> None:
    dept = await _department(db_session)

    batch = await service.create_batch(db_session, _create_payload(dept.id))

    assert batch.batch_label == "2024-2028"
    assert batch.current_year == 1
    assert batch.graduated is False
    assert [y.year_no for y in batch.years] == [1, 2, 3, 4]
    assert batch.years[0].start_date == date(2024, 7, 1)
    assert all(y.start_date is None for y in batch.years[1:])


@pytest.mark.asyncio
async def test_create_batch_requires_matching_duration(db_session: AsyncSession) -> None:
    dept = await _department(db_session, duration_years=3)

    with pytest.raises(ValidationError):
        await service.create_batch(db_session, _create_payload(dept.id, 2024, 2028))


@pytest.mark.asyncio
async def test_create_batch_rejects_duplicate_label(db_session: AsyncSession) -> None:
    dept = await _department(db_session)
    await service.create_batch(db_session, _create_payload(dept.id))

    with pytest.raises(ConflictError):
        await service.create_batch(db_session, _create_payload(dept.id))


@pytest.mark.asyncio
async def test_create_batch_rejects_bad_year_one_dates(db_session: AsyncSession) -> None:
    dept = await _department(db_session)
    payload = _create_payload(dept.id)
    payload.year_1_end_date = payload.year_1_start_date

    with pytest.raises(ValidationError):
        await service.create_batch(db_session, payload)


@pytest.mark.asyncio
async def test_update_years_validates_windows(db_session: AsyncSession, make_batch) -> None:
    batch = await make_batch(duration_years=2)
    bad = BatchYearsUpdate(
        years=[
            BatchYearInput(year_no=1, start_date=date(2024, 7, 1), end_date=date(2025, 6, 30)),
            BatchYearInput(year_no=2, start_date=date(2025, 6, 30), end_date=date(2026, 5, 31)),
        ]
    )

    with pytest.raises(ValidationError) as exc_info:
        await service.update_batch_years(db_session, batch.id, bad)
    assert exc_info.value.detail["conflicting_years"] == [1, 2]

    good = BatchYearsUpdate(
        years=[
            BatchYearInput(year_no=1, start_date=date(2024, 7, 1), end_date=date(2025, 5, 31)),
            BatchYearInput(year_no=2, start_date=date(2025, 7, 1), end_date=date(2026, 5, 31)),
        ]
    )
    updated = await service.update_batch_years(db_session, batch.id, good)
    assert updated.years[1].start_date == date(2025, 7, 1)


@pytest.mark.asyncio
async def test_update_years_requires_full_array(db_session: AsyncSession, make_batch) -> None:
    batch = await make_batch(duration_years=3)

    with pytest.raises(ValidationError):
        await service.update_batch_years(db_session, batch.id, BatchYearsUpdate(years=[BatchYearInput(year_no=1)]))
    with pytest.raises(ValidationError):
        await service.update_batch_years(
            db_session,
            batch.id,
            BatchYearsUpdate(years=[BatchYearInput(year_no=n) for n in (1, 3, 2)]),
        )


@pytest.mark.asyncio
async def test_archive_and_restore(db_session: AsyncSession, make_batch) -> None:
    batch = await make_batch()

    await service.archive_batch(db_session, batch.id)
    assert await service.list_batches(db_session) == []
    assert len(await service.list_batches(db_session, include_archived=True)) == 1
    with pytest.raises(NotFoundError):
        await service.archive_batch(db_session, batch.id)

    restored = await service.restore_batch(db_session, batch.id)
    assert restored.is_archived is False


@pytest.mark.asyncio
async def test_restore_needs_live_department(db_session: AsyncSession, make_batch) -> None:
    batch = await make_batch()
    await service.archive_batch(db_session, batch.id)
    department = await db_session.get(Department, batch.department_id)
    department.is_archived = True
    await db_session.commit()

    with pytest.raises(ConflictError):
        await service.restore_batch(db_session, batch.id)


@pytest.mark.asyncio
async def test_batch_api_validate_years_dry_run(client: AsyncClient, make_batch, admin_headers) -> None:
    batch = await make_batch(duration_years=2)
    body = {
        "years": [
            {"year_no": 1, "start_date": "2024-07-01", "end_date": "2025-07-01"},
            {"year_no": 2, "start_date": "2025-06-01", "end_date": "2026-05-31"},
        ]
    }

    response = await client.post(f"/api/v1/batches/{batch.id}/years/validate", json=body, headers=admin_headers)
    assert response.status_code == 200
    assert response.json() == {
        "ok": False,
        "conflicting_years": [1, 2],
        "message": "Year 1 must end at least one day before year 2 starts",
    }

    response = await client.put(f"/api/v1/batches/{batch.id}/years", json=body, headers=admin_headers)
    assert response.status_code == 400
    assert response.json()["detail"]["conflicting_years"] == [1, 2]


@pytest.mark.asyncio
async def test_batch_api_validate_years_checks_shape(client: AsyncClient, make_batch, admin_headers) -> None:
    batch = await make_batch(duration_years=2)
    body = {"years": [{"year_no": 1, "start_date": "2024-07-01", "end_date": "2025-05-31"}]}

    response = await client.post(f"/api/v1/batches/{batch.id}/years/validate", json=body, headers=admin_headers)
    assert response.status_code == 400

    response = await client.put(f"/api/v1/batches/{batch.id}/years", json=body, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_validate_years_rejects_out_of_order_year_no(db_session: AsyncSession, make_batch) -> None:
    batch = await make_batch(duration_years=2)
    years = [BatchYearInput(year_no=2), BatchYearInput(year_no=1)]

    with pytest.raises(ValidationError):
        await service.validate_batch_years(db_session, batch.id, years)


@pytest.mark.asyncio
async def test_batch_api_create(client: AsyncClient, admin_headers) -> None:
    response = await client.post(
        "/api/v1/departments", json={"name": "Mechanical", "duration_years": 4}, headers=admin_headers
    )
    assert response.status_code == 201
    department_id = response.json()["id"]

    response = await client.post(
        "/api/v1/batches",
        json={
            "department_id": department_id,
            "start_year": 2024,
            "end_year": 2028,
            "year_1_start_date": "2024-07-01",
            "year_1_end_date": "2025-05-31",
        },
        headers=admin_headers,
    )
    assert response.status_code == 201
    data = response.json()
    assert data["department_name"] == "Mechanical"
    assert len(data["years"]) == 4
