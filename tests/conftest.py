"""
Shared test fixtures for the Org Manager test suite.

Each test gets its own in-memory aiosqlite database; the app's ``get_db``
and ``get_mailer`` dependencies are overridden to point at it.
"""

import os
import sys
from typing import AsyncGenerator

import pytest

# Ensure project root is importable
ROOT_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)

# Override environment BEFORE importing application modules
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["CORS_ORIGINS"] = '["*"]'
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["SECRET_KEY"] = "test-secret-key-used-only-by-the-test-suite"
os.environ["CLIENT_URL"] = "http://frontend.test"

from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.v1.deps import get_db
from app.core.email import get_mailer
from app.core.security import create_access_token, get_password_hash
from app.db.base import Base
from app.main import app
from app.models.employee import Employee
from app.models.enums import Department, Role
from app.models.user import User


class RecordingMailer:
    """Stands in for SMTP; keeps every message it was asked to send."""

    def __init__(self):
        self.sent = []

    def send(self, to: str, subject: str, html: str) -> None:
        self.sent.append({"to": to, "subject": subject, "html": html})


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
async def async_client(session_factory, mailer) -> AsyncGenerator[AsyncClient, None]:
    """Return a httpx AsyncClient wired to the app."""

    async def _override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_mailer] = lambda: mailer

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Return a raw database session for direct queries in tests."""
    async with session_factory() as session:
        yield session


# ── Users & auth ────────────────────────────────────────────────────
@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: persist a user (with a linked employee by default)."""

    async def _make(
        email: str,
        password: str = "password123",
        role: Role = Role.GUEST,
        first_name: str = "Test",
        last_name: str = "User",
        with_employee: bool = True,
    ) -> User:
        employee = None
        if with_employee:
            employee = Employee(
                first_name=first_name,
                last_name=last_name,
                department=Department.ENGINEERING,
            )
            db_session.add(employee)
            await db_session.flush()
        user = User(
            email=email,
            hashed_password=get_password_hash(password),
            first_name=first_name,
            last_name=last_name,
            role=role,
            employee_id=employee.id if employee else None,
        )
        db_session.add(user)
        await db_session.commit()
        return user

    return _make


@pytest.fixture
async def admin_user(make_user) -> User:
    return await make_user("admin@example.com", role=Role.ADMIN, first_name="Ada", last_name="Admin")


@pytest.fixture
async def guest_user(make_user) -> User:
    return await make_user("guest@example.com", first_name="Gus", last_name="Guest")


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {create_access_token(user.id)}"}

    return _headers


@pytest.fixture
def admin_headers(admin_user, auth_headers) -> dict:
    return auth_headers(admin_user)


@pytest.fixture
def guest_headers(guest_user, auth_headers) -> dict:
    return auth_headers(guest_user)
