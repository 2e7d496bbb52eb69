"""Reload settings when another device changes them.

``SettingsSync`` holds one change-feed subscription per watched table for
the signed-in user. An UPDATE whose ``updated_at`` did not move is this
client's own no-op save echoing back and is ignored. Subscriptions are
released by ``close()``, by leaving ``async with`` or by ``rebind()`` to a
different user. A dropped feed is not retried; call ``open()`` again.
"""

from __future__ import annotations

import inspect
from collections.abc import Awaitable, Callable

import structlog

from idolyst.client.notices import LogNotifier, Notice, Notifier
from idolyst.client.session import Session
from idolyst.realtime.events import ChangeEvent
from idolyst.realtime.feed import ChangeFeed, Subscription

logger = structlog.get_logger()

Reload = Callable[[], Awaitable[None] | None]

NOTICES: dict[str, Notice] = {
    "privacy_settings": Notice(
        "Privacy settings updated",
        "Your privacy settings were updated from another device.",
    ),
    "notification_preferences": Notice(
        "Notification settings updated",
        "Your notification settings were updated from another device.",
    ),
}


def is_self_echo(event: ChangeEvent) -> bool:
    return event.new.get("updated_at") == event.old.get("updated_at")


class SettingsSync:
    def __init__(
        self,
        session: Session,
        feed: ChangeFeed,
        *,
        on_privacy_update: Reload | None = None,
        on_notification_update: Reload | None = None,
        notifier: Notifier | None = None,
    ) -> None:
        self.session = session
        self.feed = feed
        self.notifier = notifier or LogNotifier()
        self._callbacks: dict[str, Reload | None] = {
            "privacy_settings": on_privacy_update,
            "notification_preferences": on_notification_update,
        }
        self._subscriptions: list[Subscription] = []

    @property
    def is_open(self) -> bool:
        return bool(self._subscriptions)

    async def open(self) -> None:
        """Subscribe for the session's user. No-op when signed out or already open."""
        user_id = self.session.user_id if self.session.is_authenticated else None
        if self.is_open or user_id is None:
            return
        try:
            for table in self._callbacks:
                sub = await self.feed.subscribe(table, user_id, self._handle, events=["UPDATE"])
                self._subscriptions.append(sub)
        except Exception:
            await self.close()
            raise

    async def close(self) -> None:
        subscriptions, self._subscriptions = self._subscriptions, []
        for sub in subscriptions:
            await sub.release()

    async def rebind(self, session: Session) -> None:
        """Follow a session change, resubscribing only if the user changed."""
        same_user = session.user_id == self.session.user_id and session.is_authenticated
        self.session = session
        if same_user and self.is_open:
            return
        await self.close()
        await self.open()

    async def _handle(self, event: ChangeEvent) -> None:
        if event.event != "UPDATE" or is_self_echo(event):
            return
        logger.info("settings_changed_elsewhere", table=event.table)
        notice = NOTICES.get(event.table)
        if notice is not None:
            self.notifier.notify(notice)
        callback = self._callbacks.get(event.table)
        if callback is not None:
            result = callback()
            if inspect.isawaitable(result):
                await result

    async def __aenter__(self) -> SettingsSync:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
