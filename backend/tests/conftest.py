"""Shared test fixtures: in-memory SQLite DB, async session, test client, users."""

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from coachshare.core.auth import register_user
from coachshare.dependencies import get_db
from coachshare.main import app
from coachshare.models.base import Base
from coachshare.models.user import User, UserRole
from coachshare.services import regimen_service
from coachshare.services.realtime import NotificationHub, set_hub

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(TEST_DATABASE_URL, echo=False)


# Enable foreign key enforcement in SQLite (off by default).
@event.listens_for(test_engine.sync_engine, "connect")
def _set_sqlite_pragma(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

PASSWORD = "Pass1234!"


@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(autouse=True)
def fresh_hub():
    """Give every test its own real-time hub."""
    hub = NotificationHub()
    set_hub(hub)
    yield hub
    set_hub(None)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """Yield a test DB session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncClient:
    """Yield an httpx AsyncClient wired to the test DB."""

    async def _override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


async def _create_user(
    db: AsyncSession,
    email: str,
    role: UserRole,
    first_name: str = "Test",
    last_name: str = "User",
) -> User:
    user = await register_user(
        db,
        email=email,
        password=PASSWORD,
        first_name=first_name,
        last_name=last_name,
        role=role,
    )
    await db.commit()
    return user


async def _create_regimen(db: AsyncSession, coach: User, name: str = "Base Block"):
    start = datetime(2025, 1, 6, tzinfo=timezone.utc)
    regimen = await regimen_service.create_regimen(
        db,
        coach=coach,
        name=name,
        start_date=start,
        end_date=start + timedelta(days=28),
        days=[{"id": "day-1", "name": "Speed", "exercises": [{"name": "Sprints"}]}],
    )
    await db.commit()
    return regimen


async def _login(client: AsyncClient, email: str) -> dict[str, str]:
    response = await client.post("/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"X-Session-Token": response.json()["token"]}


@pytest_asyncio.fixture
async def coach(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "c@x.com", UserRole.coach, "Casey", "Coach")


@pytest_asyncio.fixture
async def second_coach(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "c2@x.com", UserRole.coach, "Dana", "Second")


@pytest_asyncio.fixture
async def athlete(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "a@x.com", UserRole.athlete, "Alex", "Athlete")


@pytest_asyncio.fixture
async def admin(db_session: AsyncSession) -> User:
    return await _create_user(db_session, "admin@x.com", UserRole.admin, "Ada", "Admin")


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory: ``await make_user(email, role)`` registers and commits a user."""

    async def _make(email: str, role: UserRole = UserRole.athlete, **names) -> User:
        return await _create_user(db_session, email, role, **names)

    return _make


@pytest.fixture
def make_regimen(db_session: AsyncSession):
    """Factory: ``await make_regimen(coach)`` creates a one-day regimen."""

    async def _make(coach: User, name: str = "Base Block"):
        return await _create_regimen(db_session, coach, name)

    return _make


@pytest.fixture
def login(client: AsyncClient):
    """Factory: ``await login(email)`` returns session headers for that user."""

    async def _login_as(email: str) -> dict[str, str]:
        return await _login(client, email)

    return _login_as
