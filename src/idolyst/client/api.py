"""Async HTTP client for the Idolyst API."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import structlog

logger = structlog.get_logger()

DEFAULT_TIMEOUT = 10.0


class ApiError(Exception):
    """A failed API call. ``status`` is 0 when no response was received."""

    def __init__(self, status: int, detail: Any) -> None:  # noqa: ANN401
        self.status = status
        self.detail = detail
        super().__init__(f"{status}: {detail}")

    @property
    def is_auth_error(self) -> bool:
        return self.status == 401

    @property
    def is_forbidden(self) -> bool:
        return self.status == 403


class IdolystApi:
    """Thin typed wrapper over the REST endpoints.

    ``token_provider`` is called before each request so a refreshed access
    token is picked up without rebuilding the client.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Callable[[], str | None] | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT,
    ) -> None:
        self._client = client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self._token_provider = token_provider

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> IdolystApi:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:  # noqa: ANN401
        headers: dict[str, str] = kwargs.pop("headers", {})
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            response = await self._client.request(method, path, headers=headers, **kwargs)
        except httpx.HTTPError as e:
            logger.warning("api_transport_error", method=method, path=path, error=str(e))
            raise ApiError(0, str(e)) from e

        if response.is_error:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            raise ApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ── Ascend ──

    async def get_levels(self) -> dict:
        return await self._request("GET", "/api/v1/ascend/levels")

    async def get_user_stats(self) -> dict:
        return await self._request("GET", "/api/v1/ascend/stats")

    async def get_recent_xp_transactions(self, limit: int = 5) -> list[dict]:
        return await self._request("GET", "/api/v1/ascend/xp/transactions", params={"limit": limit})

    async def get_user_badges(self) -> list[dict]:
        return await self._request("GET", "/api/v1/ascend/badges")

    async def get_available_rewards(self) -> list[dict]:
        return await self._request("GET", "/api/v1/ascend/rewards")

    async def get_user_rewards(self) -> list[dict]:
        return await self._request("GET", "/api/v1/ascend/rewards/mine")

    async def claim_reward(self, reward_id: str) -> dict:
        return await self._request("POST", f"/api/v1/ascend/rewards/{reward_id}/claim")

    async def get_leaderboard(self, time_range: str = "week") -> dict:
        return await self._request("GET", "/api/v1/ascend/leaderboard", params={"time_range": time_range})

    async def update_login_streak(self) -> dict:
        return await self._request("POST", "/api/v1/ascend/streak")

    # ── Settings ──

    async def fetch_privacy_settings(self) -> dict:
        return await self._request("GET", "/api/v1/privacy-settings")

    async def update_privacy_settings(self, changes: dict[str, Any]) -> dict:
        return await self._request("PATCH", "/api/v1/privacy-settings", json=changes)

    async def fetch_notification_preferences(self) -> dict:
        return await self._request("GET", "/api/v1/notification-preferences")

    async def update_notification_preferences(self, changes: dict[str, Any]) -> dict:
        return await self._request("PATCH", "/api/v1/notification-preferences", json=changes)

    async def mute_notifications(self, hours: int) -> dict:
        return await self._request("POST", "/api/v1/notification-preferences/mute", json={"hours": hours})

    async def unmute_notifications(self) -> dict:
        return await self._request("DELETE", "/api/v1/notification-preferences/mute")

    # ── Notifications / messages / profile ──

    async def get_notifications(self, limit: int = 20, offset: int = 0) -> dict:
        return await self._request("GET", "/api/v1/notifications", params={"limit": limit, "offset": offset})

    async def get_unread_message_count(self) -> int:
        body = await self._request("GET", "/api/v1/messages/unread-count")
        return int(body["count"])

    async def check_username_availability(self, username: str) -> bool:
        body = await self._request("GET", "/api/v1/profile/username-available", params={"username": username})
        return bool(body["available"])

    # ── Mentor Space ──

    async def fetch_mentors(self, **filters: Any) -> list[dict]:  # noqa: ANN401
        params = {k: v for k, v in filters.items() if v is not None}
        return await self._request("GET", "/api/v1/mentors", params=params)

    async def fetch_available_time_slots(self, mentor_id: str, day: str) -> list[dict]:
        return await self._request("GET", f"/api/v1/mentors/{mentor_id}/slots", params={"date": day})

    async def book_mentorship_session(self, booking: dict[str, Any]) -> dict:
        return await self._request("POST", "/api/v1/mentors/sessions", json=booking)

    async def fetch_user_sessions(self, role: str | None = None) -> list[dict]:
        params = {"role": role} if role else None
        return await self._request("GET", "/api/v1/mentors/sessions", params=params)

    async def update_session_status(self, session_id: str, status: str, meeting_link: str | None = None) -> dict:
        body: dict[str, Any] = {"status": status}
        if meeting_link is not None:
            body["meeting_link"] = meeting_link
        return await self._request("PATCH", f"/api/v1/mentors/sessions/{session_id}", json=body)

    async def submit_session_review(self, session_id: str, rating: int, comment: str | None = None) -> dict:
        return await self._request(
            "POST", f"/api/v1/mentors/sessions/{session_id}/review", json={"rating": rating, "comment": comment}
        )

    # ── Launchpad ──

    async def get_posts(self, category: str | None = None, page: int = 1, limit: int = 10) -> list[dict]:
        params: dict[str, Any] = {"page": page, "limit": limit}
        if category:
            params["category"] = category
        return await self._request("GET", "/api/v1/launchpad/posts", params=params)
