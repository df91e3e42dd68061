"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event, select
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hr_leave.auth.schemas import Actor
from hr_leave.common.constants import GenderType, UserRole
from hr_leave.config import settings
from hr_leave.database import Base, get_db
from hr_leave.main import create_app

# Import every model module so cross-module relationships resolve
import hr_leave.directory.models  # noqa: F401
import hr_leave.leave.models  # noqa: F401

from hr_leave.directory.models import Department, Employee, Team
from hr_leave.leave.models import LeaveBalance, LeaveType

# ── SQLite compat: compile PG-specific types ────────────────────────

from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(PG_UUID, "sqlite")
def _uuid_sqlite(element, compiler, **kw):
    return "CHAR(36)"


# ── Test database (SQLite in-memory) ────────────────────────────────

TEST_DATABASE_URL = "sqlite+aiosqlite://"

engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(engine.sync_engine, "connect")
def _on_connect(dbapi_conn, connection_record):
    """Register NOW() and take over transaction control from the driver."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )
    # SQLAlchemy emits BEGIN itself so SAVEPOINTs work
    dbapi_conn.isolation_level = None


@event.listens_for(engine.sync_engine, "begin")
def _on_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestSessionFactory = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False,
)


@pytest.fixture(autouse=True)
async def _setup_db():
    """Create all tables before each test, drop after."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _reset_rate_limiter():
    """Reset rate limiter storage between tests."""
    from hr_leave.common.rate_limit import limiter

    limiter.reset()
    yield


async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── FastAPI test client ─────────────────────────────────────────────

@pytest.fixture
async def app():
    """Create a fresh app instance with DB dependency overridden."""
    application = create_app()
    application.dependency_overrides[get_db] = _override_get_db
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client wired to the test app."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac


# ── Database session (for direct DB operations in tests) ────────────

@pytest.fixture
async def db() -> AsyncGenerator[AsyncSession, None]:
    async with TestSessionFactory() as session:
        yield session
        await session.commit()


# ── Model factories ─────────────────────────────────────────────────

def _make_department(*, name: str = "Engineering", code: str = "ENG") -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        code=code,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_team(*, name: str = "Platform", department_id: uuid.UUID | None = None) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        department_id=department_id,
        is_active=True,
        created_at=datetime.now(timezone.utc),
    )


def _make_employee(
    *,
    first_name: str = "Test",
    last_name: str = "User",
    gender: GenderType | None = GenderType.female,
    date_of_joining: date = date(2024, 1, 15),
    department_id: uuid.UUID | None = None,
    team_id: uuid.UUID | None = None,
) -> dict:
    suffix = uuid.uuid4().hex[:6].upper()
    return dict(
        id=uuid.uuid4(),
        employee_code=f"EMP-{suffix}",
        first_name=first_name,
        last_name=last_name,
        email=f"{first_name.lower()}.{suffix.lower()}@example.com",
        gender=gender,
        date_of_joining=date_of_joining,
        department_id=department_id,
        team_id=team_id,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )


def _make_leave_type(
    *,
    code: str = "AL",
    name: str = "Annual Leave",
    max_days_per_year: str = "20",
    **overrides,
) -> dict:
    data = dict(
        id=uuid.uuid4(),
        code=code,
        name=name,
        color="#4CAF50",
        is_paid=True,
        max_days_per_year=Decimal(max_days_per_year),
        allow_half_day=True,
        allow_carryover=False,
        max_carryover_days=Decimal("0"),
        applicable_gender=None,
        min_service_months=0,
        allow_negative_balance=False,
        is_active=True,
        created_at=datetime.now(timezone.utc),
        updated_at=datetime.now(timezone.utc),
    )
    data.update(overrides)
    return data


async def insert_employee(db: AsyncSession, **kwargs) -> dict:
    data = _make_employee(**kwargs)
    db.add(Employee(**data))
    await db.flush()
    return data


async def insert_leave_type(db: AsyncSession, **kwargs) -> dict:
    data = _make_leave_type(**kwargs)
    db.add(LeaveType(**data))
    await db.flush()
    return data


async def fetch_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Re-read a balance row from the database, bypassing cached state."""
    result = await db.execute(
        select(LeaveBalance)
        .where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.leave_type_id == leave_type_id,
            LeaveBalance.year == year,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().one()


@pytest.fixture
async def test_department(db) -> dict:
    data = _make_department()
    db.add(Department(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_team(db, test_department) -> dict:
    data = _make_team(department_id=test_department["id"])
    db.add(Team(**data))
    await db.flush()
    return data


@pytest.fixture
async def test_employee(db, test_department, test_team) -> dict:
    """An active team member."""
    return await insert_employee(
        db,
        first_name="Asha",
        last_name="Rao",
        department_id=test_department["id"],
        team_id=test_team["id"],
    )


@pytest.fixture
async def team_leader(db, test_department, test_team) -> dict:
    return await insert_employee(
        db,
        first_name="Lena",
        last_name="Lead",
        department_id=test_department["id"],
        team_id=test_team["id"],
    )


@pytest.fixture
async def hr_employee(db, test_department) -> dict:
    return await insert_employee(
        db,
        first_name="Hari",
        last_name="Resources",
        gender=GenderType.male,
        department_id=test_department["id"],
    )


@pytest.fixture
async def annual_leave(db) -> dict:
    """Annual Leave: 20 days, carry-over up to 5."""
    return await insert_leave_type(
        db,
        allow_carryover=True,
        max_carryover_days=Decimal("5"),
    )


# ── Actors ──────────────────────────────────────────────────────────

def actor_for(employee: dict, role: UserRole = UserRole.employee) -> Actor:
    return Actor(id=employee["id"], role=role)


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    employee_id: uuid.UUID,
    role: UserRole = UserRole.employee,
    expired: bool = False,
) -> str:
    """Generate a JWT access token for testing."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=1)
    payload = {
        "sub": str(employee_id),
        "role": role.value,
        "type": "access",
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers_for(employee_id: uuid.UUID, role: UserRole = UserRole.employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee_id, role)}"}
