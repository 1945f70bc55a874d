"""Shared test fixtures: async DB, client, auth helpers, factories.

Uses SQLite + aiosqlite for fast isolated tests without PostgreSQL.
"""

from __future__ import annotations

import os

# Set test JWT_SECRET before any other import touches pydantic-settings
os.environ.setdefault("JWT_SECRET", "test-secret-for-ci-do-not-use-in-production")

import uuid
from datetime import date, datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.pool import StaticPool

from hrms.auth.security import hash_password
from hrms.auth.service import TokenService
from hrms.common.constants import EmployeeRole, EmployeeStatus
from hrms.common.rate_limit import limiter
from hrms.config import Settings
from hrms.core_hr.models import Department, Employee
from hrms.database import Base, get_db
from hrms.main import create_app

# Import ALL model modules so create_all sees every table
import hrms.leave.models  # noqa: F401
import hrms.performance.models  # noqa: F401

TEST_JWT_SECRET = os.environ["JWT_SECRET"]
TEST_PASSWORD = "correct-horse-battery"


def make_settings(**overrides) -> Settings:
    """Settings for tests: cheap bcrypt, text logs."""
    values = dict(
        JWT_SECRET=TEST_JWT_SECRET,
        BCRYPT_ROUNDS=4,
        LOG_FORMAT="text",
        DATABASE_URL="sqlite+aiosqlite://",
    )
    values.update(overrides)
    return Settings(**values)


TEST_SETTINGS = make_settings()


# ── SQLite compat: compile PG-specific types ────────────────────────

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
def _register_sqlite_functions(dbapi_conn, connection_record):
    """Register NOW() so server defaults compile on SQLite."""
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
    """Clear slowapi's in-memory counters so tests do not share a budget."""
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
    application = create_app(TEST_SETTINGS)
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

def _make_department(
    *,
    name: str = "Engineering",
    location: Optional[str] = "Berlin",
    manager_id: Optional[uuid.UUID] = None,
) -> dict:
    return dict(
        id=uuid.uuid4(),
        name=name,
        description=f"{name} department",
        location=location,
        manager_id=manager_id,
    )


def _make_employee(
    *,
    email: Optional[str] = None,
    first_name: str = "Test",
    last_name: str = "User",
    department_id: Optional[uuid.UUID] = None,
    role: EmployeeRole = EmployeeRole.EMPLOYEE,
    status: EmployeeStatus = EmployeeStatus.ACTIVE,
    password: Optional[str] = TEST_PASSWORD,
) -> dict:
    code = f"EMP-{uuid.uuid4().hex[:6].upper()}"
    return dict(
        id=uuid.uuid4(),
        employee_code=code,
        first_name=first_name,
        last_name=last_name,
        email=email or f"{code.lower()}@example.com",
        department_id=department_id,
        position="Engineer",
        hire_date=date(2024, 1, 15),
        status=status,
        role=role,
        password_hash=hash_password(password, rounds=4) if password else None,
    )


async def seed_department(db: AsyncSession, **kwargs) -> Department:
    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.commit()
    return dept


async def seed_employee(db: AsyncSession, **kwargs) -> Employee:
    emp = Employee(**_make_employee(**kwargs))
    db.add(emp)
    await db.commit()
    return emp


# ── Auth helpers ────────────────────────────────────────────────────

def create_access_token(employee: Employee, settings: Settings = TEST_SETTINGS) -> str:
    """Access token for *employee*, signed the way the app signs them."""
    return TokenService(settings).issue_tokens(employee).access_token


def auth_header(employee: Employee) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(employee)}"}


@pytest.fixture
async def admin(db) -> Employee:
    return await seed_employee(
        db, first_name="Ada", last_name="Admin", role=EmployeeRole.ADMIN,
    )


@pytest.fixture
async def hr_user(db) -> Employee:
    return await seed_employee(db, first_name="Hana", last_name="Hr", role=EmployeeRole.HR)


@pytest.fixture
async def manager(db) -> Employee:
    return await seed_employee(
        db, first_name="Max", last_name="Manager", role=EmployeeRole.MANAGER,
    )


@pytest.fixture
async def staff(db) -> Employee:
    return await seed_employee(db, first_name="Sam", last_name="Staff")


@pytest.fixture
def auth_headers(admin) -> dict[str, str]:
    """Bearer headers of an ADMIN."""
    return auth_header(admin)
