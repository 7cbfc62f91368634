"""Pytest configuration and fixtures for site tests."""
import os

# Set test env BEFORE any imports that use config
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["SESSION_SECRET"] = "test-secret"

import pytest
from httpx import ASGITransport, AsyncClient

from config import Settings
from web.api.main import create_app, prepare

ADMIN_EMAIL = "root@x.com"
ADMIN_PASSWORD = "rootpass1"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        session_secret="test-secret",
        session_cookie_name="clubhouse_session",
        session_max_age=3600,
        initial_admin_username="root",
        initial_admin_email=ADMIN_EMAIL,
        initial_admin_password=ADMIN_PASSWORD,
    )


@pytest.fixture
async def app(settings):
    """App on a fresh database. ASGI lifespan doesn't run with httpx, so prepare directly."""
    application = create_app(settings)
    await prepare(application)
    yield application
    await application.state.database.dispose()


@pytest.fixture
async def make_client(app):
    """Factory for independent browsers (separate cookie jars)."""
    clients = []

    def _make(**kwargs):
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test", **kwargs)
        clients.append(ac)
        return ac

    yield _make
    for ac in clients:
        await ac.aclose()


@pytest.fixture
async def client(make_client):
    """Async HTTP client for testing the site."""
    return make_client()


@pytest.fixture
async def alice(client):
    """Client logged in as a freshly signed-up plain user."""
    r = await client.post(
        "/signup",
        data={"username": "alice", "email": "a@x.com", "password": "pw12345"},
    )
    assert r.status_code == 302, r.text
    return client


@pytest.fixture
async def admin_client(make_client):
    """Client logged in as the bootstrapped admin."""
    ac = make_client()
    r = await ac.post("/login", data={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert r.status_code == 302, f"Login failed: {r.text}"
    return ac
