"""
Test infrastructure for the Post service.

Strategy
--------
- SQLite in-memory via aiosqlite; StaticPool makes every session share the
  single connection that holds the in-memory database.
- The app's ``get_db`` dependency is overridden with the test session
  factory.
- Tables are created before and dropped after each test.
- Redis is disabled (``cache._redis = None``); the CacheManager treats
  that as a permanent miss, so every read exercises the database path.
- Callers authenticate with real bearer tokens minted by
  ``app.security.create_access_token``.
"""
import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from app.database import Base, get_db
from app.main import app
from app.cache import cache
from app.middleware import install_query_counter
from app.models import User
from app.security import create_access_token

# ---------------------------------------------------------------------------
# Test database engine: SQLite in-memory with aiosqlite
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


async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            cache.discard_pending(session)
            await session.rollback()
            raise
        await cache.invalidate_committed(session)


app.dependency_overrides[get_db] = override_get_db


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


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
    """A live session for tests that call services directly."""
    cache._redis = None
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """httpx client wired to the FastAPI app, with Redis disabled."""
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def register(async_client: AsyncClient):
    """
    Factory fixture: ``await register("alice")`` creates a user through the
    API and returns ``(user_id, auth_headers)``.
    """
    async def _register(username: str) -> tuple[str, dict]:
        resp = await async_client.post("/api/v1/users", json={
            "username": username,
            "email": f"{username}@example.com",
            "avatar": f"avatars/{username}.png",
        })
        assert resp.status_code == 201, resp.text
        user_id = resp.json()["id"]
        return user_id, auth_headers(user_id)

    return _register


@pytest_asyncio.fixture
async def make_user(db_session: AsyncSession):
    """Factory fixture inserting a User row directly; returns the User."""
    async def _make_user(username: str) -> User:
        user = User(username=username, email=f"{username}@example.com", avatar=f"{username}.png")
        db_session.add(user)
        await db_session.flush()
        return user

    return _make_user
