"""
Pytest configuration and shared fixtures for backend tests.
"""
import os

# Settings are cached on first import; point them at SQLite before that happens.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-that-is-long-enough-for-hs256")

from datetime import datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402

from feedback_dashboard import models  # noqa: E402,F401
from feedback_dashboard.api.deps import get_session_factory  # noqa: E402
from feedback_dashboard.database import Base, get_db  # noqa: E402
from feedback_dashboard.main import app  # noqa: E402
from feedback_dashboard.services.notifications import NotificationHub  # noqa: E402
from feedback_dashboard.services.realtime import change_feed  # noqa: E402

NOW = datetime(2026, 3, 18, 15, 30, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


def make_feedback(rating=None, received_at=None, **fields):
    """Plain-dict feedback row, as the aggregation and filter code accept."""
    row = {
        "id": fields.pop("id", None),
        "username": "alice",
        "sender_email": "customer@example.com",
        "sender_name": None,
        "subject": None,
        "average_rating": rating,
        "feedback_summary": None,
        "processed_at": None,
        "received_at": received_at or NOW - timedelta(hours=1),
    }
    row.update(fields)
    return row


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    # ASGITransport does not run the lifespan handler
    hub = NotificationHub(change_feed, retention=10)
    app.state.notification_hub = hub

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    await hub.close()
    app.dependency_overrides.clear()


async def register_and_login(client, username="alice", email=None, password="secret123"):
    email = email or f"{username}@example.com"
    response = await client.post(
        "/api/v1/auth/register",
        json={
            "username": username,
            "email": email,
            "password": password,
            "confirm_password": password,
        },
    )
    assert response.status_code == 201, response.text
    response = await client.post(
        "/api/v1/auth/login", json={"email": email, "password": password}
    )
    assert response.status_code == 200, response.text
    tokens = response.json()
    return {"Authorization": f"Bearer {tokens['access_token']}"}, tokens
