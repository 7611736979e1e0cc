"""Test fixtures — a fresh SQLite database and app context per test.

Each test gets its own database file under tmp_path, a fully started
AppContext (change feed included) and an httpx client speaking ASGI to
the app. The push provider is an httpx.MockTransport, so nothing leaves
the process.
"""

import uuid

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from ewaste.config import Settings
from ewaste.context import AppContext
from ewaste.db.models import Base
from ewaste.main import create_app
from ewaste.services.bin_service import BinService


class FakeFcm:
    """Stands in for fcm.googleapis.com; records every request."""

    def __init__(self):
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: dict = {"success": 1, "failure": 0, "results": [{"message_id": "m-1"}]}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code, json=self.body)


@pytest.fixture()
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        jwt_secret="test-secret",
        environment="development",
        fcm_server_key="test-server-key",
    )


@pytest.fixture()
def fcm():
    return FakeFcm()


@pytest_asyncio.fixture()
async def ctx(settings, fcm):
    http = httpx.AsyncClient(transport=httpx.MockTransport(fcm.handler))
    context = AppContext.build(settings, http=http)
    async with context.engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await context.start()
    try:
        yield context
    finally:
        await context.close()


@pytest_asyncio.fixture()
async def client(ctx):
    app = create_app(context=ctx)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture()
def provision(ctx):
    """Create a bin the way the provisioning CLI does."""

    async def _provision(sensor_id: str, **kwargs):
        async with ctx.session_factory() as db:
            return await BinService(db).provision(sensor_id, **kwargs)

    return _provision


@pytest.fixture()
def register_and_login(client):
    """Register a user on a sensor and log in; returns (user, token)."""

    async def _register_and_login(
        sensor_id: str,
        *,
        email: str | None = None,
        password: str = "password_123",
        messaging_token: str | None = "device-token-1",
    ):
        email = email or f"user-{uuid.uuid4().hex[:8]}@example.com"
        r = await client.post(
            "/api/v1/register-user",
            json={
                "sensorId": sensor_id,
                "name": "Bin Owner",
                "email": email,
                "password": password,
            },
        )
        assert r.status_code == 201, r.text
        r = await client.post(
            "/api/v1/login",
            json={"email": email, "password": password, "messagingToken": messaging_token},
        )
        assert r.status_code == 200, r.text
        body = r.json()
        return body["user"], body["token"]

    return _register_and_login
