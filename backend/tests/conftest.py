"""Shared test configuration and fixtures.

Uses a transactional rollback strategy per test for full isolation:
- Each test gets its own transaction that rolls back after the test.
- Tests run against an SQLite file (aiosqlite) unless ``TEST_DATABASE_URL``
  points at a Postgres test database.
"""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import uuid
from collections.abc import AsyncGenerator
from decimal import Decimal
from unittest.mock import patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine

from natours.auth.jwt import create_access_token
from natours.auth.passwords import hash_password
from natours.database import Base, configure_sqlite, get_db
from natours.main import app
from natours.models.tour import Tour, slugify
from natours.models.user import User

TEST_PASSWORD = "testpass123"


def make_engine(url: str):
    """Engine for tests; SQLite engines get the same pragmas as the app's."""
    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=False, connect_args={"timeout": 30})
        configure_sqlite(engine)
        return engine
    return create_async_engine(url, echo=False, pool_pre_ping=True)


# ---------------------------------------------------------------------------
# Session-scoped: create / drop all tables once per test session
# ---------------------------------------------------------------------------


@pytest.fixture(scope="session")
def test_database_url(tmp_path_factory) -> str:
    url = os.getenv("TEST_DATABASE_URL")
    if url:
        return url
    return f"sqlite+aiosqlite:///{tmp_path_factory.mktemp('db') / 'natours_test.db'}"


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def test_engine(test_database_url):
    """Create a session-scoped engine tied to the session event loop."""
    engine = make_engine(test_database_url)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="session", loop_scope="session")
async def setup_test_db(test_engine):
    """Create all tables at the start of the session and drop them at the end."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


# ---------------------------------------------------------------------------
# Per-test: transactional rollback for isolation
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def db_session(test_engine, setup_test_db) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(bind=connection, expire_on_commit=False)

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def sent_emails():
    """Never talk to SES from tests; collect what would have been sent."""
    outbox: list[dict] = []

    def _fake_send(to_email: str, subject: str, text: str) -> str:
        outbox.append({"to": to_email, "subject": subject, "text": text})
        return f"msg-{len(outbox)}"

    with patch("natours.services.email._send", side_effect=_fake_send):
        yield outbox


# ---------------------------------------------------------------------------
# Convenience fixtures: users
# ---------------------------------------------------------------------------


async def create_user(db_session: AsyncSession, role: str = "user", **overrides) -> User:
    """Create and return a user directly in the DB."""
    unique = uuid.uuid4().hex[:8]
    data = {
        "email": f"{role}-{unique}@test.com",
        "hashed_password": hash_password(TEST_PASSWORD),
        "name": f"Test {role.title()}",
        "role": role,
    }
    data.update(overrides)
    user = User(**data)
    db_session.add(user)
    await db_session.flush()
    await db_session.refresh(user)
    return user


def headers_for(user: User) -> dict[str, str]:
    """Authorization headers for ``user``."""
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture
async def test_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "user")


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "user")


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await create_user(db_session, "admin")


@pytest_asyncio.fixture
async def lead_guide(db_session: AsyncSession) -> User:
    return await create_user(db_session, "lead-guide")


@pytest_asyncio.fixture
async def auth_headers(test_user: User) -> dict[str, str]:
    """Return Authorization headers for the test user."""
    return headers_for(test_user)


@pytest_asyncio.fixture
async def admin_headers(admin_user: User) -> dict[str, str]:
    return headers_for(admin_user)


# ---------------------------------------------------------------------------
# Convenience fixtures: tours
# ---------------------------------------------------------------------------


async def create_tour(db_session: AsyncSession, **overrides) -> Tour:
    """Create and return a tour directly in the DB."""
    unique = uuid.uuid4().hex[:6]
    data = {
        "name": f"Test Tour {unique}",
        "duration": 5,
        "max_group_size": 10,
        "difficulty": "easy",
        "price": Decimal("497.00"),
        "summary": "A tour created for automated tests",
        "image_cover": "tour-test-cover.jpg",
        "start_dates": ["2027-04-25T09:00:00+00:00", "2027-07-20T09:00:00+00:00"],
        "start_location": {
            "type": "Point",
            "coordinates": [-116.214531, 51.417611],
            "address": "224 Banff Ave, Banff",
            "description": "Banff, CAN",
        },
    }
    data.update(overrides)
    data.setdefault("slug", slugify(data["name"]))
    tour = Tour(**data)
    db_session.add(tour)
    await db_session.flush()
    await db_session.refresh(tour)
    return tour


@pytest_asyncio.fixture
async def test_tour(db_session: AsyncSession) -> Tour:
    return await create_tour(db_session)


@pytest.fixture
def make_user(db_session: AsyncSession):
    """Factory fixture: ``await make_user("admin", name=...)``."""

    async def _make(role: str = "user", **overrides) -> User:
        return await create_user(db_session, role, **overrides)

    return _make


@pytest.fixture
def make_tour(db_session: AsyncSession):
    """Factory fixture: ``await make_tour(price=Decimal("100"))``."""

    async def _make(**overrides) -> Tour:
        return await create_tour(db_session, **overrides)

    return _make


@pytest.fixture
def make_headers():
    return headers_for
