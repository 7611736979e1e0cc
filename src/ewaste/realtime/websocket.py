"""WebSocket endpoint — live bin fill levels for dashboards.

Clients connect to /ws/bins?token=JWT. On connect they receive one
message per bin, {"event": <sensorId>, "data": <fillPercentage>}, and the
same full snapshot again after every bin change.

Admission uses the same JWT as the HTTP API. With
EWASTE_REALTIME_AUTH_REQUIRED=false the channel is open, and a token is
only checked if one is supplied.
"""

import json
from typing import Any

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState

from ewaste.auth.jwt import verify_token
from ewaste.errors import AuthenticationError
from ewaste.realtime.registry import new_session_id

logger = structlog.get_logger()
router = APIRouter()


class WebSocketSession:
    """Registry entry for one websocket connection."""

    def __init__(self, websocket: WebSocket):
        self.id = new_session_id()
        self.websocket = websocket

    @property
    def open(self) -> bool:
        return (
            self.websocket.client_state == WebSocketState.CONNECTED
            and self.websocket.application_state == WebSocketState.CONNECTED
        )

    async def emit(self, event: str, data: Any) -> None:
        if not self.open:
            return
        await self.websocket.send_json({"event": event, "data": data})


@router.websocket("/ws/bins")
async def bins_websocket(websocket: WebSocket):
    ctx = websocket.app.state.ctx

    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("token")

    if not token and ctx.settings.realtime_auth_required:
        await websocket.close(code=4001, reason="Authentication required")
        return

    if token:
        try:
            verify_token(token, ctx.settings)
        except AuthenticationError as e:
            await websocket.close(code=4001, reason=e.message)
            return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()
    session = WebSocketSession(websocket)
    ctx.registry.connect(session)

    try:
        await ctx.broadcaster.send_snapshot(session)
        while True:
            data = await websocket.receive_text()
            try:
                msg = json.loads(data)
            except json.JSONDecodeError:
                continue
            if isinstance(msg, dict) and msg.get("type") == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))
    except WebSocketDisconnect:
        pass
    finally:
        ctx.registry.disconnect(session)
        if session.open:
            await websocket.close()
