"""WebSocket tests — admission, snapshot on connect, live updates.

These run through Starlette's TestClient so the app's own lifespan owns
the context (schema created on startup, change feed started).
"""

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ewaste.auth.jwt import create_access_token
from ewaste.config import Settings
from ewaste.main import create_app
from ewaste.services.bin_service import BinService


def _settings(tmp_path, **overrides) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path}/ws.db",
        auto_create_schema=True,
        jwt_secret="test-secret",
        environment="development",
        **overrides,
    )


def _token(settings: Settings, **kwargs) -> str:
    user = {"id": "user-1", "name": "Owner", "email": "owner@example.com", "sensorId": "S1"}
    return create_access_token(user, settings, **kwargs)


def _seed(tc: TestClient, *sensor_ids: str) -> None:
    ctx = tc.app.state.ctx

    async def _provision():
        async with ctx.session_factory() as db:
            for sensor_id in sensor_ids:
                await BinService(db).provision(sensor_id)
        await ctx.change_feed.drain()

    tc.portal.call(_provision)


def test_snapshot_then_live_update(tmp_path):
    settings = _settings(tmp_path)
    with TestClient(create_app(settings)) as tc:
        _seed(tc, "S1", "S2")

        with tc.websocket_connect(f"/ws/bins?token={_token(settings)}") as ws:
            assert ws.receive_json() == {"event": "S1", "data": 0}
            assert ws.receive_json() == {"event": "S2", "data": 0}

            r = tc.patch("/api/v1/bins/fill-level", json={"sensorId": "S1", "percentage": 87})
            assert r.status_code == 200

            # Full re-send after the change
            assert ws.receive_json() == {"event": "S1", "data": 87}
            assert ws.receive_json() == {"event": "S2", "data": 0}


def test_ping_pong(tmp_path):
    settings = _settings(tmp_path)
    with TestClient(create_app(settings)) as tc:
        with tc.websocket_connect(f"/ws/bins?token={_token(settings)}") as ws:
            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}


def test_missing_token_rejected(tmp_path):
    with TestClient(create_app(_settings(tmp_path))) as tc:
        with pytest.raises(WebSocketDisconnect) as exc:
            with tc.websocket_connect("/ws/bins") as ws:
                ws.receive_json()
        assert exc.value.code == 4001


def test_invalid_token_rejected(tmp_path):
    with TestClient(create_app(_settings(tmp_path))) as tc:
        with pytest.raises(WebSocketDisconnect) as exc:
            with tc.websocket_connect("/ws/bins?token=not-a-jwt") as ws:
                ws.receive_json()
        assert exc.value.code == 4001


def test_token_signed_with_other_secret_rejected(tmp_path):
    settings = _settings(tmp_path)
    foreign = _token(Settings(jwt_secret="someone-else", environment="development"))
    with TestClient(create_app(settings)) as tc:
        with pytest.raises(WebSocketDisconnect) as exc:
            with tc.websocket_connect(f"/ws/bins?token={foreign}") as ws:
                ws.receive_json()
        assert exc.value.code == 4001


def test_open_channel_when_auth_not_required(tmp_path):
    settings = _settings(tmp_path, realtime_auth_required=False)
    with TestClient(create_app(settings)) as tc:
        _seed(tc, "S1")
        with tc.websocket_connect("/ws/bins") as ws:
            assert ws.receive_json() == {"event": "S1", "data": 0}
