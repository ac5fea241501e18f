import os
import sys
import asyncio
import uuid
from datetime import datetime, timedelta, timezone

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

# A sufficiently long JWT secret for tests
TEST_JWT_SECRET = "x" * 32
os.environ.setdefault("JWT_SECRET", TEST_JWT_SECRET)
# Honour any externally provided DATABASE_URL (e.g. CI may set a file-backed DB)
# but fall back to an in-memory SQLite database so local runs remain isolated.
DEFAULT_DB_URL = os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ALLOWED_ORIGINS", "http://testserver")
os.environ.setdefault("DISABLE_RATE_LIMITS", "true")

from pingpong import db, models  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def session_loop():
    """Single event loop for all sync fixtures that need to run async DB code."""

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    yield loop
    loop.close()


@pytest.fixture(autouse=True)
def jwt_secret(monkeypatch):
    """Ensure a strong JWT secret is present for all tests."""
    monkeypatch.setenv("JWT_SECRET", TEST_JWT_SECRET)
    yield


@pytest.fixture(autouse=True, scope="session")
def ensure_database(session_loop):
    """Ensure the test database starts clean and honours DATABASE_URL."""

    mp = pytest.MonkeyPatch()
    desired_url = os.getenv("DATABASE_URL") or DEFAULT_DB_URL
    mp.setenv("DATABASE_URL", desired_url)

    if desired_url.startswith("sqlite") and ":memory:" not in desired_url:
        path = desired_url.split("///")[-1]
        if os.path.exists(path):
            os.remove(path)

    db.engine = None
    db.AsyncSessionLocal = None
    yield
    session_loop.run_until_complete(db.dispose_engine())
    mp.undo()


async def _reset_schema(engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(db.Base.metadata.drop_all)
        await conn.run_sync(db.Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_schema(session_loop):
    """Start every test from empty tables."""

    engine = db.engine or db.get_engine()
    session_loop.run_until_complete(_reset_schema(engine))
    yield


@pytest.fixture
def run(session_loop):
    """Run a coroutine on the shared loop."""
    return session_loop.run_until_complete


async def add_user(username: str, *, is_admin: bool = False) -> models.User:
    async with db.AsyncSessionLocal() as session:
        user = models.User(id=uuid.uuid4().hex, username=username, is_admin=is_admin)
        session.add(user)
        await session.commit()
        return user


async def add_player(
    name: str, *, user_id: str | None = None, rating: float = 1500.0
) -> models.Player:
    async with db.AsyncSessionLocal() as session:
        player = models.Player(
            id=uuid.uuid4().hex,
            user_id=user_id,
            name=name,
            rating=rating,
            games_played=0,
            wins=0,
            losses=0,
            created_at=BASE_TIME - timedelta(days=1),
        )
        session.add(player)
        await session.commit()
        return player


async def load(model, pk):
    async with db.AsyncSessionLocal() as session:
        return await session.get(model, pk)
