"""Shared test fixtures: async DB, client, auth helpers, factories.

Reusable across all test modules (calendar, profiles, leave, swap, etc.).
Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timedelta, timezone
from typing import AsyncGenerator, Iterable, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from ops_portal.auth.dependencies import Actor
from ops_portal.common.constants import ApprovalMode, UserRole
from ops_portal.config import settings
from ops_portal.database import Base, get_db
from ops_portal.events.publisher import bus
from ops_portal.main import create_app

# Import ALL model modules so every table lands on Base.metadata
import ops_portal.common.audit  # noqa: F401
import ops_portal.directory.models  # noqa: F401
import ops_portal.holidays.models  # noqa: F401
import ops_portal.leave.models  # noqa: F401
import ops_portal.profiles.models  # noqa: F401
import ops_portal.replace_day.models  # noqa: F401
import ops_portal.swap.models  # noqa: F401

# ── SQLite compat: compile PG-specific types to TEXT/BLOB ───────────

from sqlalchemy.dialects.postgresql import JSONB, UUID as PG_UUID
from sqlalchemy.ext.compiler import compiles


@compiles(JSONB, "sqlite")
def _jsonb_sqlite(element, compiler, **kw):
    return "TEXT"


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


# Register PG-compatible functions for SQLite
@event.listens_for(engine.sync_engine, "connect")
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() as a SQLite custom function."""
    dbapi_conn.create_function(
        "NOW", 0, lambda: datetime.now(timezone.utc).isoformat(),
    )

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
    """Reset rate limiter storage between tests to prevent cross-test interference."""
    from ops_portal.common.rate_limit import limiter
    try:
        # Clear the in-memory storage used by slowapi/limits
        if hasattr(limiter, '_storage'):
            limiter._storage.reset()
    except Exception:
        pass
    yield


@pytest.fixture(autouse=True)
def _reset_event_bus():
    """Drop subscribers registered by a previous test."""
    bus.clear()
    yield
    bus.clear()


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


@pytest.fixture
async def file_sessions(tmp_path):
    """Session factory on a file-backed SQLite database.

    Unlike the in-memory engine, every session checks out its own
    connection, so two sessions really interleave their transactions.
    """
    file_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ops_portal.db'}")
    event.listen(file_engine.sync_engine, "connect", _register_sqlite_functions)
    async with file_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(file_engine, class_=AsyncSession, expire_on_commit=False)
    await file_engine.dispose()


# ── Actors ──────────────────────────────────────────────────────────

EMPLOYEE = Actor(employee_id="E100", login_id="emp.user", roles=frozenset({UserRole.LEAVE_USER}))
MANAGER = Actor(employee_id="E200", login_id="mgr.user", roles=frozenset({UserRole.LEAVE_MANAGER}))
GM = Actor(employee_id="E300", login_id="gm.user", roles=frozenset({UserRole.LEAVE_GM}))
COO = Actor(employee_id="E400", login_id="coo.user", roles=frozenset({UserRole.LEAVE_COO}))
ADMIN = Actor(employee_id="E900", login_id="hr.admin", roles=frozenset({UserRole.ADMIN}))
OUTSIDER = Actor(employee_id="E500", login_id="someone.else", roles=frozenset({UserRole.LEAVE_USER}))


# ── Model factories ─────────────────────────────────────────────────

def _make_profile(
    *,
    employee_id: str = EMPLOYEE.employee_id,
    login_id: str = EMPLOYEE.login_id,
    join_date: date = date(2025, 6, 2),
    contract_start: Optional[date] = None,
    approval_mode: ApprovalMode = ApprovalMode.MANAGER_AND_GM,
    manager: Optional[str] = MANAGER.login_id,
    gm: Optional[str] = GM.login_id,
    coo: Optional[str] = COO.login_id,
    al_carry_in=0,
    baseline: Optional[int] = None,
    is_active: bool = True,
):
    """Build an unsaved LeaveProfile with contract #1."""
    from ops_portal.common.dates import full_months_between
    from ops_portal.profiles.models import LeaveContract, LeaveProfile

    start = contract_start or join_date
    profile = LeaveProfile(
        id=uuid.uuid4(),
        employee_id=employee_id,
        employee_login_id=login_id,
        join_date=join_date,
        current_contract_start=start,
        manager_login_id=manager,
        gm_login_id=gm,
        coo_login_id=coo,
        approval_mode=approval_mode,
        is_active=is_active,
    )
    profile.contracts = [
        LeaveContract(
            id=uuid.uuid4(),
            contract_no=1,
            start_date=start,
            al_carry_in=al_carry_in,
            accrual_baseline_months=(
                baseline if baseline is not None else full_months_between(join_date, start)
            ),
            opened_by="seed",
        )
    ]
    return profile


async def seed_profile(db: AsyncSession, **kwargs):
    """Insert a profile (defaults: EMPLOYEE, MANAGER_AND_GM) and flush."""
    profile = _make_profile(**kwargs)
    db.add(profile)
    await db.flush()
    return profile


async def seed_directory(db: AsyncSession, entries: Iterable[tuple[str, str, str]]) -> None:
    """Insert ``(employee_id, name, department)`` directory rows."""
    from ops_portal.directory.models import EmployeeDirectory

    for employee_id, name, department in entries:
        db.add(EmployeeDirectory(employee_id=employee_id, name=name, department=department, is_active=True))
    await db.flush()


async def seed_holiday(db: AsyncSession, day: date, name: str = "Holiday") -> None:
    from ops_portal.holidays.models import Holiday

    db.add(Holiday(holiday_date=day, name=name, created_by="seed"))
    await db.flush()


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(
    actor: Actor,
    expired: bool = False,
) -> str:
    """Generate a JWT the way the portal's auth layer issues them."""
    if expired:
        exp = datetime.now(timezone.utc) - timedelta(hours=1)
    else:
        exp = datetime.now(timezone.utc) + timedelta(hours=8)
    payload = {
        "sub": actor.employee_id,
        "login_id": actor.login_id,
        "roles": sorted(r.value for r in actor.roles),
        "exp": exp,
    }
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def auth_headers(actor: Actor) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(actor)}"}


async def seed_leave(
    db: AsyncSession,
    profile,
    *,
    leave_type="AL",
    start: date,
    end: Optional[date] = None,
    days="1",
    approved: bool = False,
):
    """Insert a leave request for *profile*; ``approved`` marks every level approved."""
    from decimal import Decimal

    from ops_portal.common.constants import LeaveTypeCode, RequestStatus, StepStatus
    from ops_portal.leave.models import LeaveRequest
    from ops_portal.workflow.service import ApprovalService

    fields = ApprovalService.initial_fields(profile)
    if approved:
        fields["status"] = RequestStatus.APPROVED
        fields["approvals"] = [
            {**step, "status": StepStatus.APPROVED.value, "acted_at": "2025-01-01T00:00:00+00:00"}
            for step in fields["approvals"]
        ]
    request = LeaveRequest(
        id=uuid.uuid4(),
        requester_employee_id=profile.employee_id,
        requester_login_id=profile.employee_login_id,
        leave_type=LeaveTypeCode(leave_type),
        start_date=start,
        end_date=end or start,
        total_days=Decimal(str(days)),
        **fields,
    )
    db.add(request)
    await db.flush()
    return request
