"""Fixtures for the leave service tests.

Everything runs against in-memory SQLite through aiosqlite; the PostgreSQL
column types are compiled down to SQLite equivalents below.
"""

from __future__ import annotations

import os

# pydantic-settings reads JWT_SECRET at import time
os.environ.setdefault("JWT_SECRET", "leave-tests-only-secret")

import uuid
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncIterator, Iterable, Optional
from unittest.mock import patch

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from hr_leave.common.audit import AuditTrail  # noqa: F401  (registers audit_trail)
from hr_leave.common.constants import HolidayType, LeaveTypeStatus, UserRole
from hr_leave.common.rate_limit import limiter
from hr_leave.config import settings
from hr_leave.database import Base, get_db
from hr_leave.holidays.models import Holiday
from hr_leave.leave import service as leave_service
from hr_leave.leave.models import LeaveBalance, LeaveType
from hr_leave.main import create_app

TENANT_ID = uuid.UUID("00000000-0000-0000-0000-00000000a001")
OTHER_TENANT_ID = uuid.UUID("00000000-0000-0000-0000-00000000b002")

FROZEN_NOW = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)    # a Sunday


@compiles(JSONB, "sqlite")
def _jsonb_as_text(element, compiler, **kw):
    return "TEXT"


@compiles(PG_UUID, "sqlite")
def _uuid_as_char(element, compiler, **kw):
    return "CHAR(36)"


# SQLite supports ON CONFLICT DO NOTHING too; allocation uses it on both
leave_service._INSERT_BY_DIALECT["sqlite"] = sqlite_insert


# one shared connection so every session sees the same in-memory database
test_engine = create_async_engine(
    "sqlite+aiosqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


@event.listens_for(test_engine.sync_engine, "connect")
def _add_now_function(dbapi_conn, connection_record):
    # server_default=text("NOW()") on created_at columns
    dbapi_conn.create_function("NOW", 0, lambda: datetime.now(timezone.utc).isoformat())


test_sessions = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(autouse=True)
async def _schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def _fresh_limiter():
    limiter.reset()


async def _test_db() -> AsyncIterator[AsyncSession]:
    """Same commit/rollback contract as ``get_db``, bound to SQLite."""
    async with test_sessions() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


@pytest.fixture
async def client() -> AsyncIterator[AsyncClient]:
    app = create_app()
    app.dependency_overrides[get_db] = _test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
async def db() -> AsyncIterator[AsyncSession]:
    """Session for calling services directly; committed at teardown."""
    async with test_sessions() as session:
        yield session
        await session.commit()


@pytest.fixture
def frozen_now():
    """Fix the leave service clock (notice periods, default balance year)."""
    with patch("hr_leave.leave.service._utcnow", return_value=FROZEN_NOW) as clock:
        yield clock


# ── Seed helpers ────────────────────────────────────────────────────

async def seed_leave_type(
    db: AsyncSession,
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    code: str = "EL",
    name: str = "Earned Leave",
    days_per_year: Optional[Decimal] = Decimal("12"),
    allow_carry_forward: bool = False,
    max_carry_forward_days: Optional[Decimal] = None,
    min_notice_days: int = 0,
    max_consecutive_days: Optional[int] = None,
    status: LeaveTypeStatus = LeaveTypeStatus.active,
) -> LeaveType:
    stamp = datetime.now(timezone.utc)
    leave_type = LeaveType(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        code=code,
        name=name,
        description=None,
        is_system_defined=False,
        days_per_year=days_per_year,
        allow_carry_forward=allow_carry_forward,
        max_carry_forward_days=max_carry_forward_days,
        min_notice_days=min_notice_days,
        max_consecutive_days=max_consecutive_days,
        is_paid=True,
        color=None,
        status=status,
        created_at=stamp,
        updated_at=stamp,
    )
    db.add(leave_type)
    await db.flush()
    return leave_type


async def seed_balance(
    db: AsyncSession,
    user_id: uuid.UUID,
    leave_type_id: uuid.UUID,
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    year: int = 2026,
    total_allocated: Decimal = Decimal("12"),
    carry_forward: Decimal = Decimal("0"),
    used: Decimal = Decimal("0"),
    pending: Decimal = Decimal("0"),
) -> LeaveBalance:
    balance = LeaveBalance(
        id=uuid.uuid4(),
        tenant_id=tenant_id,
        user_id=user_id,
        leave_type_id=leave_type_id,
        year=year,
        total_allocated=total_allocated,
        carry_forward=carry_forward,
        used=used,
        pending=pending,
        available=total_allocated + carry_forward - used - pending,
        version=0,
    )
    db.add(balance)
    await db.flush()
    return balance


async def seed_holidays(
    db: AsyncSession,
    dates: Iterable[date],
    *,
    tenant_id: uuid.UUID = TENANT_ID,
    type: HolidayType = HolidayType.public,
) -> list[Holiday]:
    rows = [
        Holiday(
            id=uuid.uuid4(),
            tenant_id=tenant_id,
            name=f"Holiday {day.isoformat()}",
            date=day,
            type=type,
            description=None,
            is_optional=type == HolidayType.optional,
        )
        for day in dates
    ]
    db.add_all(rows)
    await db.flush()
    return rows


# ── Tokens ──────────────────────────────────────────────────────────

def create_access_token(
    user_id: uuid.UUID,
    *roles: UserRole,
    tenant_id: uuid.UUID = TENANT_ID,
    expired: bool = False,
) -> str:
    lifetime = timedelta(hours=-1 if expired else 1)
    claims = {
        "sub": str(user_id),
        "tenant_id": str(tenant_id),
        "roles": [role.value for role in (roles or (UserRole.employee,))],
        "type": "access",
        "exp": datetime.now(timezone.utc) + lifetime,
    }
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_header(user_id: uuid.UUID, *roles: UserRole, **kwargs) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id, *roles, **kwargs)}"}
