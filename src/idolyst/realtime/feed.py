"""Change-feed subscriptions.

A ``ChangeFeed`` delivers ``ChangeEvent`` objects for one table filtered to one
user. Every ``subscribe`` returns a ``Subscription`` handle that must be
released; ``ChangeFeed.channel`` scopes a subscription to an ``async with``
block and releases it on every exit path.

There is no reconnect logic: if the underlying connection drops, events are
lost until the owner subscribes again.
"""

from __future__ import annotations

import asyncio
import inspect
import json
import uuid
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import redis.asyncio as aioredis
import structlog
from pydantic import ValidationError
from redis.exceptions import RedisError

from idolyst.realtime.events import ChangeEvent, ChangeKind, channel_for

logger = structlog.get_logger()

ChangeCallback = Callable[[ChangeEvent], Awaitable[None] | None]


@dataclass(eq=False)
class Subscription:
    """Handle for one registered callback."""

    table: str
    user_id: str
    callback: ChangeCallback
    events: frozenset[str]
    feed: ChangeFeed
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    active: bool = True

    @property
    def channel(self) -> str:
        return channel_for(self.table, self.user_id)

    def accepts(self, event: ChangeEvent) -> bool:
        return self.active and event.table == self.table and event.event in self.events

    async def release(self) -> None:
        await self.feed.unsubscribe(self)


ALL_EVENTS: frozenset[str] = frozenset({"INSERT", "UPDATE", "DELETE"})


class ChangeFeed(ABC):
    """Registry of subscriptions plus event dispatch. Subclasses own the transport."""

    def __init__(self) -> None:
        self._subscriptions: dict[str, list[Subscription]] = defaultdict(list)

    @property
    def subscription_count(self) -> int:
        return sum(len(subs) for subs in self._subscriptions.values())

    async def subscribe(
        self,
        table: str,
        user_id: str,
        callback: ChangeCallback,
        events: Iterable[ChangeKind] | None = None,
    ) -> Subscription:
        sub = Subscription(
            table=table,
            user_id=user_id,
            callback=callback,
            events=frozenset(events) if events else ALL_EVENTS,
            feed=self,
        )
        first = not self._subscriptions[sub.channel]
        self._subscriptions[sub.channel].append(sub)
        if first:
            await self._open_channel(sub.channel)
        logger.debug("change_feed_subscribed", table=table, user_id=user_id, subscription=sub.id)
        return sub

    async def unsubscribe(self, sub: Subscription) -> None:
        """Release a subscription. Releasing twice is a no-op."""
        if not sub.active:
            return
        sub.active = False
        subs = self._subscriptions.get(sub.channel, [])
        if sub in subs:
            subs.remove(sub)
        if not subs:
            self._subscriptions.pop(sub.channel, None)
            await self._close_channel(sub.channel)
        logger.debug("change_feed_released", table=sub.table, user_id=sub.user_id, subscription=sub.id)

    @asynccontextmanager
    async def channel(
        self,
        table: str,
        user_id: str,
        callback: ChangeCallback,
        events: Iterable[ChangeKind] | None = None,
    ) -> AsyncIterator[Subscription]:
        """Subscribe for the duration of the block."""
        sub = await self.subscribe(table, user_id, callback, events)
        try:
            yield sub
        finally:
            await self.unsubscribe(sub)

    async def dispatch(self, channel: str, event: ChangeEvent) -> int:
        """Invoke every matching callback on ``channel``. Returns the number invoked."""
        delivered = 0
        for sub in list(self._subscriptions.get(channel, [])):
            if not sub.accepts(event):
                continue
            try:
                result = sub.callback(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception:
                logger.exception("change_feed_callback_failed", channel=channel, subscription=sub.id)
        return delivered

    @abstractmethod
    async def _open_channel(self, channel: str) -> None: ...

    @abstractmethod
    async def _close_channel(self, channel: str) -> None: ...


class RedisChangeFeed(ChangeFeed):
    """Change feed backed by Redis pub/sub; one listener task per feed."""

    def __init__(self, redis_client: aioredis.Redis) -> None:
        super().__init__()
        self.redis = redis_client
        self._pubsub: aioredis.client.PubSub | None = None
        self._task: asyncio.Task[None] | None = None

    async def _open_channel(self, channel: str) -> None:
        if self._pubsub is None:
            self._pubsub = self.redis.pubsub()
        await self._pubsub.subscribe(channel)
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._listen())

    async def _close_channel(self, channel: str) -> None:
        if self._pubsub is not None:
            await self._pubsub.unsubscribe(channel)

    async def _listen(self) -> None:
        pubsub = self._pubsub
        if pubsub is None:
            return
        try:
            while True:
                message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
                if message is None:
                    continue
                await self.handle_message(message)
        except asyncio.CancelledError:
            pass
        except (RedisError, OSError):
            # No reconnect: events are lost until the owner subscribes again.
            logger.exception("change_feed_listener_failed")

    async def handle_message(self, message: dict) -> int:
        """Parse one pub/sub message and dispatch it."""
        channel = message.get("channel", "")
        if isinstance(channel, bytes):
            channel = channel.decode(errors="replace")
        data = message.get("data", "")
        try:
            if isinstance(data, bytes):
                data = data.decode()
            event = ChangeEvent.model_validate(json.loads(data))
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
            logger.warning("change_feed_invalid_message", channel=channel)
            return 0
        return await self.dispatch(channel, event)

    async def close(self) -> None:
        """Release every subscription and stop listening.

        The listener and the pub/sub connection are torn down even when
        unsubscribing fails on a dead connection.
        """
        try:
            for subs in list(self._subscriptions.values()):
                for sub in list(subs):
                    await self.unsubscribe(sub)
        finally:
            task, self._task = self._task, None
            pubsub, self._pubsub = self._pubsub, None
            try:
                if task is not None:
                    task.cancel()
                    try:
                        await task
                    except asyncio.CancelledError:
                        pass
            finally:
                if pubsub is not None:
                    await pubsub.aclose()
