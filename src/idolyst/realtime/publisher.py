"""Publish change events over Redis pub/sub."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Any

from idolyst.realtime.events import ChangeEvent, ChangeKind, channel_for

logger = logging.getLogger(__name__)


async def publish_change(
    redis: object | None,
    table: str,
    user_ids: Iterable[str],
    event: ChangeKind,
    new: dict[str, Any] | None = None,
    old: dict[str, Any] | None = None,
) -> int:
    """Publish one event per recipient. Returns the number of channels published to.

    Delivery is best-effort: a Redis failure is logged and never fails the write
    that produced the change.
    """
    if redis is None:
        return 0

    payload = ChangeEvent(event=event, table=table, new=new or {}, old=old or {}).model_dump_json()
    published = 0
    for user_id in dict.fromkeys(user_ids):
        try:
            await redis.publish(channel_for(table, user_id), payload)  # type: ignore[union-attr]
            published += 1
        except Exception:
            logger.warning("Failed to publish %s change for user %s", table, user_id, exc_info=True)
    return published


class DeferredPublisher:
    """Holds pub/sub messages until the transaction that produced them commits.

    Services call ``publish`` exactly as they would on a Redis client. The owner
    of the transaction calls ``flush`` after a successful commit; anything still
    pending when the transaction is abandoned is dropped with ``discard``.
    """

    def __init__(self, redis: object | None) -> None:
        self.redis = redis
        self._pending: list[tuple[str, str]] = []

    @property
    def pending(self) -> list[tuple[str, str]]:
        return list(self._pending)

    async def publish(self, channel: str, message: str) -> int:
        if self.redis is not None:
            self._pending.append((channel, message))
        return 0

    async def flush(self) -> int:
        """Publish everything queued so far. Returns the number of messages sent."""
        pending, self._pending = self._pending, []
        sent = 0
        for channel, message in pending:
            try:
                await self.redis.publish(channel, message)  # type: ignore[union-attr]
                sent += 1
            except Exception:
                logger.warning("Failed to publish deferred message on %s", channel, exc_info=True)
        return sent

    def discard(self) -> None:
        if self._pending:
            logger.info("Dropping %d unpublished messages", len(self._pending))
        self._pending.clear()
