"""
Pytest fixtures for test database, client, and authentication.

Each test gets its own SQLite database file, so sessions opened by request
handlers and by the test itself see each other's commits exactly as they
would against PostgreSQL. The identity provider is replaced by an in-memory
fake keyed by bearer token.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("REDIS_ENABLED", "false")
os.environ.setdefault("ENVIRONMENT", "test")

from datetime import datetime, timezone
from typing import AsyncGenerator, Optional

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from app.core.exceptions import AuthorizationError
from app.models.position import Position
from app.models.booking import Booking
from app.schemas.identity import CurrentUser, IdentityUser
from app.services.identity_service import get_identity_provider

USER_TOKEN = "user-token"
OTHER_TOKEN = "other-token"
STAFF_TOKEN = "staff-token"

USER_ID = "100001"
OTHER_ID = "100003"
STAFF_ID = "200002"


class FakeIdentityProvider:
    """Stands in for the IVAO API: token -> identity, plus a staff roster."""

    def __init__(self):
        self.users = {
            USER_TOKEN: IdentityUser(id=USER_ID, firstName="Ana", lastName="Lopez", division="XM", country="MX"),
            OTHER_TOKEN: IdentityUser(id=OTHER_ID, firstName="Luis", lastName="Perez", division="XM", country="MX"),
            STAFF_TOKEN: IdentityUser(id=STAFF_ID, firstName="Sam", lastName="Staff", division="XM", country="MX"),
        }
        self.staff_ids = {STAFF_ID}

    async def fetch_user(self, credential: str) -> IdentityUser:
        if credential not in self.users:
            raise AuthorizationError("Invalid or expired credential", status_code=401)
        return self.users[credential]

    async def is_staff(self, user_id: str, credential: Optional[str] = None) -> bool:
        return user_id in self.staff_ids


@pytest_asyncio.fixture(scope="function")
async def session_factory(tmp_path) -> AsyncGenerator[async_sessionmaker, None]:
    """Fresh database file per test; tables created up front and dropped after."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest_asyncio.fixture(scope="function")
async def client(session_factory, identity_provider) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with the DB and identity provider dependencies overridden."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_provider] = lambda: identity_provider

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def user_headers() -> dict:
    return {"Authorization": f"Bearer {USER_TOKEN}"}


@pytest.fixture
def other_headers() -> dict:
    return {"Authorization": f"Bearer {OTHER_TOKEN}"}


@pytest.fixture
def staff_headers() -> dict:
    return {"Authorization": f"Bearer {STAFF_TOKEN}"}


@pytest.fixture
def user_actor() -> CurrentUser:
    return CurrentUser(identity=IdentityUser(id=USER_ID), is_staff=False)


@pytest.fixture
def other_actor() -> CurrentUser:
    return CurrentUser(identity=IdentityUser(id=OTHER_ID), is_staff=False)


@pytest.fixture
def staff_actor() -> CurrentUser:
    return CurrentUser(identity=IdentityUser(id=STAFF_ID), is_staff=True)


@pytest_asyncio.fixture
async def approach_position(db_session: AsyncSession) -> Position:
    """Active XMMM_APP position."""
    position = Position(id="XMMM_APP", name="XMMM Approach", description="Approach Control")
    db_session.add(position)
    await db_session.commit()
    await db_session.refresh(position)
    return position


@pytest_asyncio.fixture
async def inactive_position(db_session: AsyncSession) -> Position:
    position = Position(id="XMMM_TWR", name="XMMM Tower", description="Tower", is_active=False)
    db_session.add(position)
    await db_session.commit()
    await db_session.refresh(position)
    return position


async def add_booking(
    session: AsyncSession,
    *,
    position: str = "XMMM_APP",
    date: str = "2024-01-15",
    start_time: str = "10:00",
    end_time: str = "12:00",
    user_id: str = USER_ID,
    status: str = "active",
    type: str = "controlling",
    updated_at: Optional[datetime] = None,
) -> Booking:
    """Insert a booking directly, bypassing the service rules."""
    booking = Booking(
        position=position,
        date=date,
        start_time=start_time,
        end_time=end_time,
        user_id=user_id,
        status=status,
        type=type,
    )
    if updated_at is not None:
        booking.updated_at = updated_at
    session.add(booking)
    await session.commit()
    await session.refresh(booking)
    return booking


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
