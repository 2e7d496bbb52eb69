"""Unread direct-message badge count."""

from __future__ import annotations

import structlog

from idolyst.client.api import ApiError, IdolystApi
from idolyst.client.session import Session
from idolyst.realtime.events import ChangeEvent
from idolyst.realtime.feed import ChangeFeed, Subscription

logger = structlog.get_logger()


def affects_unread(event: ChangeEvent, user_id: str) -> bool:
    """A message from someone else arrived, or a message was just read."""
    if event.event == "INSERT":
        return event.new.get("sender_id") != user_id
    if event.event == "UPDATE":
        return event.old.get("is_read") is False and event.new.get("is_read") is True
    return False


class UnreadMessageCounter:
    """Keeps ``count`` in line with the server, recounting on every relevant change."""

    def __init__(self, api: IdolystApi, session: Session, feed: ChangeFeed) -> None:
        self.api = api
        self.session = session
        self.feed = feed
        self.count = 0
        self._subscription: Subscription | None = None

    async def refresh(self) -> int:
        """Fetch the count. A failed fetch keeps the last known value."""
        if not self.session.is_authenticated:
            self.count = 0
            return 0
        try:
            self.count = await self.api.get_unread_message_count()
        except ApiError as e:
            logger.warning("unread_count_failed", status=e.status, detail=e.detail)
        return self.count

    async def start(self) -> None:
        user_id = self.session.user_id if self.session.is_authenticated else None
        if user_id is None:
            self.count = 0
            return
        if self._subscription is None:
            self._subscription = await self.feed.subscribe(
                "messages", user_id, self._handle, events=["INSERT", "UPDATE"]
            )
        await self.refresh()

    async def stop(self) -> None:
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            await subscription.release()

    async def rebind(self, session: Session) -> None:
        await self.stop()
        self.session = session
        await self.start()

    async def _handle(self, event: ChangeEvent) -> None:
        user_id = self.session.user_id
        if user_id is not None and affects_unread(event, user_id):
            await self.refresh()

    async def __aenter__(self) -> UnreadMessageCounter:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
