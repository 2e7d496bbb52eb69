"""Fan Redis pub/sub messages out to the owning user's WebSockets.

Sources:

- ``ws:user:{user_id}``: notifications, sent to all of the user's sockets
- ``realtime:{table}:{user_id}``: row change events, sent on ``realtime``
- ``pubsub:level_up``: progression events, sent on ``ascend`` to ``user_id``
"""

import asyncio
import json

import redis.asyncio as aioredis
import structlog

from idolyst.realtime.events import CHANNEL_PREFIX, parse_channel
from idolyst.ws.manager import ConnectionManager, manager

logger = structlog.get_logger()

USER_PATTERN = "ws:user:*"
REALTIME_PATTERN = f"{CHANNEL_PREFIX}:*"
ASCEND_CHANNELS = frozenset({"pubsub:level_up"})


class PubSubBridge:
    """Subscribes to Redis pub/sub and pushes messages to WebSocket clients."""

    def __init__(self, redis_client: aioredis.Redis, connections: ConnectionManager | None = None) -> None:
        self.redis = redis_client
        self.connections = connections or manager
        self._running = False

    async def route(self, message: dict) -> int:
        """Deliver one pub/sub message. Returns the number of sockets reached."""
        channel = message.get("channel", "")
        if isinstance(channel, bytes):
            channel = channel.decode()

        data = message.get("data", "")
        try:
            if isinstance(data, bytes):
                data = data.decode()
            payload = json.loads(data)
        except (json.JSONDecodeError, UnicodeDecodeError, TypeError):
            logger.warning("pubsub_invalid_message", channel=channel)
            return 0
        if not isinstance(payload, dict):
            logger.warning("pubsub_invalid_message", channel=channel)
            return 0

        if channel.startswith("ws:user:"):
            user_id = channel.removeprefix("ws:user:")
            if not user_id:
                return 0
            return await self.connections.send_to_user_direct(
                user_id,
                {
                    "channel": "notifications",
                    "type": payload.get("event", "notification"),
                    "payload": payload.get("data", payload),
                },
            )

        parsed = parse_channel(channel)
        if parsed is not None:
            _table, user_id = parsed
            return await self.connections.send_to_user(user_id, "realtime", payload)

        if channel in ASCEND_CHANNELS:
            user_id = payload.get("user_id")
            if not user_id:
                return 0
            return await self.connections.send_to_user(
                str(user_id),
                "ascend",
                {"type": channel.split(":")[-1], **payload},
            )

        return 0

    async def start(self) -> None:
        self._running = True
        pubsub = self.redis.pubsub()
        await pubsub.subscribe(*ASCEND_CHANNELS)
        await pubsub.psubscribe(USER_PATTERN, REALTIME_PATTERN)
        logger.info(
            "pubsub_bridge_started",
            channels=sorted(ASCEND_CHANNELS),
            patterns=[USER_PATTERN, REALTIME_PATTERN],
        )

        try:
            while self._running:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                sent = await self.route(message)
                if sent:
                    logger.debug("pubsub_forwarded", channel=message.get("channel"), recipients=sent)
        except asyncio.CancelledError:
            pass
        finally:
            await pubsub.unsubscribe()
            await pubsub.punsubscribe()
            await pubsub.aclose()
            logger.info("pubsub_bridge_stopped")

    async def stop(self) -> None:
        self._running = False
