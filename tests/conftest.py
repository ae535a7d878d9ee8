import os
import uuid
from datetime import date
from typing import AsyncGenerator, Callable, Dict, Optional

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_JSON", "false")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.auth.security import create_access_token
from app.core.enums import AllowanceStatus, HostelStatus
from app.core.models import Batch, BatchYear, Department, Student, WashAllowance, WashPolicy
from app.db.session import Base, get_db
from app.main import app


TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture()
async def engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Let SQLAlchemy emit BEGIN itself so SAVEPOINT works with pysqlite
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
async def session_factory(engine) -> async_sessionmaker:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture()
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Provide a database session for a test and override FastAPI dependency."""
    async with session_factory() as session:

        async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
            yield session

        app.dependency_overrides[get_db] = override_get_db
        yield session

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client bound to the FastAPI app."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


# ----- Tokens -----
def _bearer(claims: Dict) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(subject=claims)}"}


@pytest.fixture()
def admin_headers() -> Dict[str, str]:
    return _bearer({"sub": str(uuid.uuid4()), "role": "SUPER_ADMIN"})


@pytest.fixture()
def staff_headers() -> Callable[..., Dict[str, str]]:
    """Token for a non-admin role carrying only the given permissions."""

    def _make(permissions: Optional[Dict[str, Dict[str, bool]]] = None) -> Dict[str, str]:
        return _bearer({"sub": str(uuid.uuid4()), "role": "LAUNDRY_STAFF", "permissions": permissions or {}})

    return _make


@pytest.fixture()
def student_headers() -> Callable[[uuid.UUID], Dict[str, str]]:
    def _make(student_id: uuid.UUID) -> Dict[str, str]:
        return _bearer({"sub": str(uuid.uuid4()), "role": "STUDENT", "student_id": str(student_id)})

    return _make


# ----- Seed data -----
@pytest.fixture()
def make_policy(db_session: AsyncSession):
    async def _make(
        total_washes: int = 30,
        max_weight_per_wash: float = 7.0,
        is_active: bool = True,
        name: Optional[str] = None,
    ) -> WashPolicy:
        policy = WashPolicy(
            name=name or f"Policy {uuid.uuid4().hex[:6]}",
            total_washes=total_washes,
            max_weight_per_wash=max_weight_per_wash,
            is_active=is_active,
            is_archived=False,
        )
        db_session.add(policy)
        await db_session.commit()
        return policy

    return _make


@pytest.fixture()
def make_batch(db_session: AsyncSession):
    """Department plus batch; year 1 dated, later years undated."""

    async def _make(duration_years: int = 4, current_year: int = 1, start_year: int = 2024) -> Batch:
        department = Department(name=f"Dept {uuid.uuid4().hex[:6]}", duration_years=duration_years)
        db_session.add(department)
        await db_session.flush()
        batch = Batch(
            department_id=department.id,
            batch_label=f"{start_year}-{start_year + duration_years}",
            start_year=start_year,
            end_year=start_year + duration_years,
            current_year=current_year,
        )
        batch.years = [
            BatchYear(year_no=1, start_date=date(start_year, 7, 1), end_date=date(start_year + 1, 5, 31)),
            *[BatchYear(year_no=n) for n in range(2, duration_years + 1)],
        ]
        db_session.add(batch)
        await db_session.commit()
        return batch

    return _make


@pytest.fixture()
def make_student(db_session: AsyncSession):
    async def _make(batch: Batch, hostel_status: HostelStatus = HostelStatus.active, name: str = "Asha") -> Student:
        student = Student(
            batch_id=batch.id,
            name=name,
            registration_number=f"REG-{uuid.uuid4().hex[:8]}",
            hostel_status=hostel_status,
        )
        db_session.add(student)
        await db_session.commit()
        return student

    return _make


@pytest.fixture()
def make_allowance(db_session: AsyncSession):
    async def _make(
        student: Student,
        total_washes: int = 30,
        max_weight_per_wash: float = 7.0,
        used_washes: int = 0,
        year_no: int = 1,
        status: AllowanceStatus = AllowanceStatus.open,
    ) -> WashAllowance:
        allowance = WashAllowance(
            student_id=student.id,
            batch_id=student.batch_id,
            year_no=year_no,
            total_washes=total_washes,
            max_weight_per_wash=max_weight_per_wash,
            used_washes=used_washes,
            remaining_washes=total_washes - used_washes,
            status=status,
        )
        db_session.add(allowance)
        await db_session.commit()
        return allowance

    return _make
