"""
Test configuration and fixtures.
"""
import os
from typing import AsyncGenerator, List, Optional

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

# Set testing environment before the application modules read it
os.environ["ENVIRONMENT"] = "testing"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ.pop("ANDROID_API_KEY", None)

from hrassess.core.auth import create_token, hash_password
from hrassess.core.database import Base, make_engine, make_session_factory
from hrassess.main import create_app
from hrassess.models.orm import User, UserRole
from hrassess.services.hr_client import HRRosterClient

HR_URL = "http://hr.test/api/hrpersonnel/public"
ADMIN_PASSWORD = "adminpassword123"


class FakeRoster:
    """Stand-in for the external HR endpoint, served through ``httpx.MockTransport``."""

    def __init__(self):
        self.records: List[dict] = []
        self.status_code = 200
        self.body: Optional[bytes] = None
        self.error: Optional[Exception] = None
        self.calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.error is not None:
            raise self.error
        if self.body is not None:
            return httpx.Response(self.status_code, content=self.body)
        return httpx.Response(self.status_code, json={"data": self.records})


@pytest.fixture
async def engine(tmp_path):
    """Fresh SQLite database per test."""
    engine = make_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def hr_roster() -> FakeRoster:
    return FakeRoster()


@pytest.fixture
def roster_client(hr_roster: FakeRoster) -> HRRosterClient:
    return HRRosterClient(url=HR_URL, timeout=1.0, transport=httpx.MockTransport(hr_roster.handler))


@pytest.fixture
def app(session_factory, roster_client):
    return create_app(session_factory=session_factory, roster_client=roster_client, manage_database=False)


@pytest.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def add_user(session_factory, name: str, employee_id: str, role: str = UserRole.USER.value, password: str = "") -> User:
    async with session_factory() as session:
        user = User(name=name, employee_id=employee_id, role=role, password=password)
        session.add(user)
        await session.commit()
        return user


@pytest.fixture
async def admin_user(session_factory) -> User:
    """Create an admin test user"""
    return await add_user(session_factory, "Admin", "ADM001", UserRole.ADMIN.value, hash_password(ADMIN_PASSWORD))


@pytest.fixture
async def test_user(session_factory) -> User:
    """Create a regular test user"""
    return await add_user(session_factory, "Budi Santoso", "EMP001")


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(admin_user)}"}


@pytest.fixture
def user_headers(test_user: User) -> dict:
    return {"Authorization": f"Bearer {create_token(test_user)}"}


@pytest.fixture
def make_user(session_factory):
    async def _make(name: str, employee_id: str, role: str = UserRole.USER.value, password: str = "") -> User:
        return await add_user(session_factory, name, employee_id, role, password)

    return _make
