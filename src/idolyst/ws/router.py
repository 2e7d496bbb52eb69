"""WebSocket endpoint with token authentication and channel multiplexing."""

import json
import uuid

import jwt
import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from idolyst.auth.jwt import verify_token
from idolyst.ws.manager import manager

logger = structlog.get_logger()

router = APIRouter()


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket, token: str = Query(...)) -> None:
    """Authenticated socket; clients opt into ``ascend``, ``notifications`` and ``realtime``.

    Client -> Server:
        {"action": "subscribe", "channel": "realtime"}
        {"action": "unsubscribe", "channel": "realtime"}
        {"action": "ping"}

    Server -> Client:
        {"channel": "realtime", "data": {...}}
        {"type": "subscribed" | "unsubscribed", "channel": "..."}
        {"type": "pong"}
        {"type": "error", "message": "..."}
    """
    try:
        payload = verify_token(token)
    except jwt.InvalidTokenError as e:
        await websocket.close(code=4001, reason=f"Authentication failed: {e}")
        return
    user_id = str(payload["sub"])

    conn_id = uuid.uuid4().hex
    await manager.connect(websocket, conn_id, user_id)

    try:
        while True:
            raw = await websocket.receive_text()
            try:
                msg = json.loads(raw)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue
            if not isinstance(msg, dict):
                await websocket.send_json({"type": "error", "message": "Expected an object"})
                continue

            action = msg.get("action")
            channel = msg.get("channel", "")
            if action == "subscribe":
                if await manager.subscribe(conn_id, channel):
                    await websocket.send_json({"type": "subscribed", "channel": channel})
                else:
                    await websocket.send_json({"type": "error", "message": f"Invalid channel: {channel}"})
            elif action == "unsubscribe":
                await manager.unsubscribe(conn_id, channel)
                await websocket.send_json({"type": "unsubscribed", "channel": channel})
            elif action == "ping":
                await websocket.send_json({"type": "pong"})
            else:
                await websocket.send_json({"type": "error", "message": f"Unknown action: {action}"})
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("ws_error", conn_id=conn_id)
    finally:
        await manager.disconnect(conn_id)
