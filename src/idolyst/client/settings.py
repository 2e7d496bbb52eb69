"""Editable copies of the user's privacy settings and notification preferences.

Both stores keep their previous state when a backend call fails.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

import structlog

from idolyst.client.api import ApiError, IdolystApi
from idolyst.client.notices import LogNotifier, Notice, Notifier, error_notice
from idolyst.client.session import Session
from idolyst.notifications.service import DEFAULT_PREFERENCES, is_muted, mute_remaining_hours
from idolyst.profiles.service import DEFAULT_PRIVACY

logger = structlog.get_logger()


class _SettingsStore:
    kind = "settings"

    def __init__(self, api: IdolystApi, session: Session, notifier: Notifier | None = None) -> None:
        self.api = api
        self.session = session
        self.notifier = notifier or LogNotifier()
        self.state: dict[str, Any] | None = None
        self.is_loading = False
        self.is_saving = False

    @property
    def _signed_in(self) -> bool:
        return self.session.is_authenticated

    async def _fetch(self) -> dict[str, Any]:
        raise NotImplementedError

    async def _send(self, changes: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    async def load(self) -> dict[str, Any] | None:
        if not self._signed_in:
            return self.state
        self.is_loading = True
        try:
            self.state = await self._fetch()
        except ApiError as e:
            logger.warning("settings_load_failed", kind=self.kind, status=e.status, detail=e.detail)
        finally:
            self.is_loading = False
        return self.state

    async def save(self, changes: dict[str, Any] | None = None) -> bool:
        """Persist ``changes`` (or the whole local state). True on success."""
        if not self._signed_in:
            return False
        payload = changes if changes is not None else self._editable(self.state or {})
        self.is_saving = True
        try:
            self.state = await self._send(payload)
        except ApiError as e:
            logger.warning("settings_save_failed", kind=self.kind, status=e.status, detail=e.detail)
            self.notifier.notify(error_notice(f"Error saving {self.kind}"))
            return False
        finally:
            self.is_saving = False
        return True

    def update(self, field: str, value: Any) -> None:  # noqa: ANN401
        """Change one field locally; nothing is sent until ``save``."""
        if self.state is None:
            return
        self.state = {**self.state, field: value}

    def _editable(self, state: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in state.items() if k != "updated_at"}


class PrivacySettingsStore(_SettingsStore):
    kind = "privacy settings"

    def __init__(self, api: IdolystApi, session: Session, notifier: Notifier | None = None) -> None:
        super().__init__(api, session, notifier)
        self.state = dict(DEFAULT_PRIVACY)

    async def _fetch(self) -> dict[str, Any]:
        return await self.api.fetch_privacy_settings()

    async def _send(self, changes: dict[str, Any]) -> dict[str, Any]:
        return await self.api.update_privacy_settings(changes)


class NotificationPreferencesStore(_SettingsStore):
    kind = "notification preferences"
    defaults = DEFAULT_PREFERENCES

    async def _fetch(self) -> dict[str, Any]:
        return await self.api.fetch_notification_preferences()

    async def _send(self, changes: dict[str, Any]) -> dict[str, Any]:
        return await self.api.update_notification_preferences(changes)

    def _editable(self, state: dict[str, Any]) -> dict[str, Any]:
        return {k: v for k, v in state.items() if k not in ("updated_at", "muted_until")}

    async def mute_for_hours(self, hours: int | None) -> bool:
        """Mute for ``hours``; ``None`` clears the mute."""
        if not self._signed_in or self.state is None:
            return False
        self.is_saving = True
        try:
            if hours is None:
                self.state = await self.api.unmute_notifications()
            else:
                self.state = await self.api.mute_notifications(hours)
        except ApiError as e:
            logger.warning("mute_failed", hours=hours, status=e.status, detail=e.detail)
            self.notifier.notify(error_notice("Error updating mute"))
            return False
        finally:
            self.is_saving = False
        if hours is not None:
            self.notifier.notify(Notice("Notifications muted", f"You won't get push notifications for {hours}h."))
        return True

    def is_muted(self, now: datetime | None = None) -> bool:
        return is_muted(self.state or {}, now)

    def mute_remaining_hours(self, now: datetime | None = None) -> int:
        return mute_remaining_hours(self.state or {}, now)
