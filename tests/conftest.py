"""
Test infrastructure for the Forum API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- The app's get_db dependency is overridden so every test-time request uses
  the test session factory rather than the production one.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- Notifications are disabled by setting notifier._redis = None; the publisher
  drops events in that state, so no Redis is needed.
- Users are inserted straight into the database and given a signed token,
  which keeps endpoint tests independent of the login flow.
"""
import itertools

import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from forum.database import Base, get_db
from forum.main import app
from forum.middleware import install_query_counter
from forum.models import User
from forum.notifications import notifier
from forum.security import create_access_token, hash_password

# ---------------------------------------------------------------------------
# Test database engine - SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

TEST_PASSWORD = "correct-horse-battery"
TEST_PASSWORD_HASH = hash_password(TEST_PASSWORD)


# ---------------------------------------------------------------------------
# Dependency override - replace production get_db with the test session factory
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call service functions
    directly (no HTTP layer).
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.
    """
    notifier._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def make_user():
    """
    Factory fixture: ``await make_user(is_admin=False)`` commits a new user
    and returns ``(user_id, headers)`` where *headers* carries its bearer token.
    """
    counter = itertools.count(1)

    async def _make(is_admin: bool = False, display_name: str | None = None):
        n = next(counter)
        async with async_session_test() as session:
            user = User(
                username=f"member{n}",
                email=f"member{n}@example.com",
                display_name=display_name,
                avatar=f"https://cdn.example.com/avatars/{n}.png",
                password_hash=TEST_PASSWORD_HASH,
                is_admin=is_admin,
            )
            session.add(user)
            await session.commit()
            token = create_access_token(user.id)
            return user.id, {"Authorization": f"Bearer {token}"}

    return _make


@pytest_asyncio.fixture
async def fetch():
    """Read a row back through a fresh session (sees only committed state)."""

    async def _fetch(model, pk):
        async with async_session_test() as session:
            return await session.get(model, pk)

    return _fetch
