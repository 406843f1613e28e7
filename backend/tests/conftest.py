"""
Pinpoint Backend — Test Configuration (conftest.py)
====================================================

What:  Shared fixtures: isolated settings, a live service registry on a
       temporary SQLite database, and an HTTP client bound to a fresh app.

Fixture Hierarchy (all function-scoped):
    test_settings ─┬─ registry ─┬─ db     (AsyncSession)
                   │            ├─ store  (EntityStore)
                   │            └─ hub    (RealtimeHub, attached)
                   └─ app ── client       (httpx AsyncClient, lifespan run)

scrypt runs with N=1024 so a sign-up costs milliseconds instead of ~50ms.
"""

import os
import tempfile
from typing import Any, AsyncGenerator, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup
# ══════════════════════════════════════════════════════════════════════════

# Before any pinpoint import: the module-level settings/app read these
_scratch = tempfile.mkdtemp(prefix="pinpoint_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_scratch}/default.db"
os.environ["UPLOAD_ROOT"] = os.path.join(_scratch, "upload")
os.environ["SCRYPT_N"] = "1024"
os.environ["LOG_LEVEL"] = "WARNING"

from pinpoint.config import Settings  # noqa: E402
from pinpoint.main import create_app  # noqa: E402
from pinpoint.registry import build_registry  # noqa: E402

FAST_SCRYPT_N = 1024


class RecordingClient:
    """Stands in for a WebSocket: keeps every message it is sent."""

    def __init__(self):
        self.client_id = None
        self.messages: List[Any] = []

    async def send_json(self, data: Any) -> None:
        self.messages.append(data)

    def events(self, name: str) -> List[dict]:
        return [m["data"] for m in self.messages if m["event"] == name]


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'pinpoint.db'}",
        db_create_all=True,
        upload_root=str(tmp_path / "upload"),
        scrypt_n=FAST_SCRYPT_N,
        log_level="WARNING",
        environment="development",
    )


@pytest_asyncio.fixture
async def registry(test_settings):
    registry = build_registry(test_settings)
    await registry.database.create_all()
    registry.realtime.attach()
    yield registry
    registry.realtime.close()
    await registry.database.dispose()


@pytest_asyncio.fixture
async def db(registry):
    async with registry.database.session_factory() as session:
        yield session


@pytest.fixture
def store(registry):
    return registry.store


@pytest.fixture
def hub(registry):
    return registry.realtime


@pytest.fixture
def listener(hub) -> RecordingClient:
    """A realtime client connected to the registry's hub."""
    client = RecordingClient()
    client.client_id = hub.connect(client)
    return client


@pytest_asyncio.fixture
async def app(test_settings):
    app = create_app(test_settings)
    async with app.router.lifespan_context(app):
        yield app


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """
    HTTPX AsyncClient talking to the app in-process.

    Usage:
        async def test_info(client):
            response = await client.get("/api")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_png_bytes() -> bytes:
    """PNG signature plus an empty IHDR-sized tail; never decoded, only stored."""
    return b"\x89PNG\r\n\x1a\n" + b"\x00" * 32


async def sign_up(client: AsyncClient, username: str, password: str = "s3cret-pass", name: str = "Tester") -> dict:
    response = await client.post(
        "/api/User", json={"name": name, "username": username, "password": password}
    )
    assert response.status_code == 201, response.text
    return response.json()["user"]


async def sign_in(client: AsyncClient, username: str, password: str = "s3cret-pass") -> dict:
    """Sign in and return Authorization headers for the session."""
    response = await client.put("/api/Me", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['cyToken']}"}
