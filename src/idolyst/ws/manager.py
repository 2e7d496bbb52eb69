"""WebSocket connection registry.

Connections belong to one user and opt into channels:

- ``ascend``: level-ups and other progression events for the user
- ``notifications``: new notifications (also delivered without subscribing)
- ``realtime``: row change events for the user's settings and messages
"""

import json
import time
from collections import defaultdict
from dataclasses import dataclass, field

import structlog
from fastapi import WebSocket

logger = structlog.get_logger()

VALID_CHANNELS = frozenset({"ascend", "notifications", "realtime"})


@dataclass
class ClientConnection:
    websocket: WebSocket
    user_id: str
    subscriptions: set[str] = field(default_factory=set)
    connected_at: float = field(default_factory=time.time)
    messages_sent: int = 0


class ConnectionManager:
    """Tracks sockets by connection id, user and channel. Single event loop only."""

    def __init__(self) -> None:
        self._connections: dict[str, ClientConnection] = {}
        self._channels: dict[str, set[str]] = defaultdict(set)
        self._user_connections: dict[str, set[str]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, websocket: WebSocket, conn_id: str, user_id: str) -> None:
        await websocket.accept()
        self._connections[conn_id] = ClientConnection(websocket=websocket, user_id=user_id)
        self._user_connections[user_id].add(conn_id)
        logger.info("ws_connected", conn_id=conn_id, user_id=user_id)

    async def disconnect(self, conn_id: str) -> None:
        """Forget a connection and all of its subscriptions. Unknown ids are ignored."""
        client = self._connections.pop(conn_id, None)
        if client is None:
            return

        for channel in client.subscriptions:
            members = self._channels.get(channel)
            if members is not None:
                members.discard(conn_id)
                if not members:
                    del self._channels[channel]

        owned = self._user_connections.get(client.user_id)
        if owned is not None:
            owned.discard(conn_id)
            if not owned:
                del self._user_connections[client.user_id]

        logger.info("ws_disconnected", conn_id=conn_id, user_id=client.user_id)

    async def subscribe(self, conn_id: str, channel: str) -> bool:
        """False for an unknown connection or channel."""
        client = self._connections.get(conn_id)
        if client is None or channel not in VALID_CHANNELS:
            return False
        client.subscriptions.add(channel)
        self._channels[channel].add(conn_id)
        logger.debug("ws_subscribed", conn_id=conn_id, channel=channel)
        return True

    async def unsubscribe(self, conn_id: str, channel: str) -> bool:
        client = self._connections.get(conn_id)
        if client is None:
            return False
        client.subscriptions.discard(channel)
        members = self._channels.get(channel)
        if members is not None:
            members.discard(conn_id)
            if not members:
                del self._channels[channel]
        return True

    async def _send(self, conn_ids: list[str], payload: str) -> int:
        sent = 0
        dead: list[str] = []
        for conn_id in conn_ids:
            client = self._connections.get(conn_id)
            if client is None:
                continue
            try:
                await client.websocket.send_text(payload)
            except Exception:
                logger.debug("ws_send_failed", conn_id=conn_id, exc_info=True)
                dead.append(conn_id)
                continue
            client.messages_sent += 1
            sent += 1
        for conn_id in dead:
            await self.disconnect(conn_id)
        return sent

    async def broadcast_to_channel(self, channel: str, message: dict) -> int:
        """Send to every subscriber of ``channel``. Returns the delivery count."""
        conn_ids = list(self._channels.get(channel, ()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps({"channel": channel, "data": message}, default=str))

    async def send_to_user(self, user_id: str, channel: str, message: dict) -> int:
        """Send to the user's connections that subscribed to ``channel``."""
        conn_ids = [
            conn_id
            for conn_id in self._user_connections.get(user_id, ())
            if channel in self._connections[conn_id].subscriptions
        ]
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps({"channel": channel, "data": message}, default=str))

    async def send_to_user_direct(self, user_id: str, message: dict) -> int:
        """Send to all of the user's connections regardless of subscriptions."""
        conn_ids = list(self._user_connections.get(user_id, ()))
        if not conn_ids:
            return 0
        return await self._send(conn_ids, json.dumps(message, default=str))

    def get_stats(self) -> dict:
        return {
            "total_connections": len(self._connections),
            "unique_users": len(self._user_connections),
            "channels": {ch: len(conns) for ch, conns in self._channels.items() if conns},
        }


manager = ConnectionManager()
