"""Tests for notification preference rules and saves."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import USER_ID, make_db, scalar_result
from idolyst.db.models import NotificationPreferences
from idolyst.errors import ValidationFailedError
from idolyst.notifications.service import (
    DEFAULT_PREFERENCES,
    create_notification,
    group_by_day,
    is_muted,
    mute_notifications,
    mute_remaining_hours,
    should_deliver,
    should_push,
    update_notification_preferences,
)

NOW = datetime(2026, 5, 1, 12, 0, tzinfo=timezone.utc)


def _prefs(**overrides: object) -> NotificationPreferences:
    values = {**DEFAULT_PREFERENCES, **overrides}
    return NotificationPreferences(
        user_id=USER_ID,
        created_at=NOW - timedelta(days=3),
        updated_at=NOW - timedelta(days=1),
        **values,
    )


class TestMute:
    def test_not_muted(self) -> None:
        assert not is_muted({"muted_until": None}, NOW)
        assert mute_remaining_hours({"muted_until": None}, NOW) == 0

    def test_muted_in_future(self) -> None:
        prefs = {"muted_until": NOW + timedelta(hours=2, minutes=10)}
        assert is_muted(prefs, NOW)
        assert mute_remaining_hours(prefs, NOW) == 3

    def test_expired_mute(self) -> None:
        assert not is_muted({"muted_until": NOW - timedelta(minutes=1)}, NOW)

    def test_iso_string(self) -> None:
        prefs = {"muted_until": (NOW + timedelta(hours=1)).isoformat()}
        assert mute_remaining_hours(prefs, NOW) == 1


class TestDelivery:
    def test_toggle_off_blocks_creation(self) -> None:
        assert not should_deliver({**DEFAULT_PREFERENCES, "pitch_vote": False}, "pitch_vote")

    def test_transactional_always_delivered(self) -> None:
        prefs = {name: False for name in DEFAULT_PREFERENCES}
        assert should_deliver(prefs, "payment_success")
        assert should_deliver(prefs, "reward_claimed")

    def test_push_disabled_or_muted(self) -> None:
        assert should_push({"push_enabled": True, "muted_until": None}, NOW)
        assert not should_push({"push_enabled": False, "muted_until": None}, NOW)
        assert not should_push({"push_enabled": True, "muted_until": NOW + timedelta(hours=1)}, NOW)


def test_group_by_day_omits_empty_groups() -> None:
    today = date(2026, 5, 1)
    items = [
        {"id": "a", "created_at": "2026-05-01T09:00:00+00:00"},
        {"id": "b", "created_at": "2026-04-20T09:00:00+00:00"},
        {"id": "c", "created_at": "2026-04-19T09:00:00+00:00"},
    ]
    groups = group_by_day(items, today)
    assert [g["title"] for g in groups] == ["Today", "Earlier"]
    assert groups[0]["date"] == "2026-05-01"
    assert [n["id"] for n in groups[1]["notifications"]] == ["b", "c"]


@pytest.mark.asyncio
class TestUpdatePreferences:
    async def test_unknown_field(self) -> None:
        with pytest.raises(ValidationFailedError) as exc_info:
            await update_notification_preferences(make_db(), None, USER_ID, {"carrier_pigeon": True})
        assert exc_info.value.field == "carrier_pigeon"

    async def test_bad_digest_frequency(self) -> None:
        with pytest.raises(ValidationFailedError):
            await update_notification_preferences(make_db(), None, USER_ID, {"email_digest_frequency": "hourly"})

    async def test_change_bumps_updated_at_and_publishes(self) -> None:
        prefs = _prefs()
        before = prefs.updated_at
        db = make_db()
        db.execute.return_value = scalar_result(prefs)
        redis = AsyncMock()

        result = await update_notification_preferences(db, redis, USER_ID, {"pitch_vote": False})

        assert result["pitch_vote"] is False
        assert result["updated_at"] > before
        redis.publish.assert_awaited_once()
        channel = redis.publish.await_args.args[0]
        assert channel == f"realtime:notification_preferences:{USER_ID}"

    async def test_noop_save_keeps_updated_at(self) -> None:
        prefs = _prefs()
        before = prefs.updated_at
        db = make_db()
        db.execute.return_value = scalar_result(prefs)
        redis = AsyncMock()

        result = await update_notification_preferences(db, redis, USER_ID, {"pitch_vote": True})

        assert result["updated_at"] == before
        redis.publish.assert_awaited_once()

    async def test_mute_requires_positive_hours(self) -> None:
        with pytest.raises(ValidationFailedError):
            await mute_notifications(make_db(), None, USER_ID, 0)

    async def test_mute_sets_deadline(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(_prefs())
        result = await mute_notifications(db, None, USER_ID, 8, now=NOW)
        assert result["muted_until"] == NOW + timedelta(hours=8)


@pytest.mark.asyncio
class TestCreateNotification:
    async def test_invalid_type(self) -> None:
        with pytest.raises(ValueError, match="Invalid notification type"):
            await create_notification(make_db(), USER_ID, "carrier_pigeon", "t", "c")

    async def test_disabled_category_is_not_created(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(_prefs(new_follower=False))
        redis = AsyncMock()

        result = await create_notification(db, USER_ID, "new_follower", "New follower", "Bob follows you", redis=redis)

        assert result is None
        db.add.assert_not_called()
        redis.publish.assert_not_awaited()

    async def test_muted_is_persisted_but_not_pushed(self) -> None:
        db = make_db()
        far_future = datetime.now(timezone.utc) + timedelta(days=1)
        db.execute.return_value = scalar_result(_prefs(muted_until=far_future))
        redis = AsyncMock()

        result = await create_notification(db, USER_ID, "pitch_vote", "Vote", "Someone voted", redis=redis)

        assert result is not None
        db.add.assert_called_once_with(result)
        redis.publish.assert_not_awaited()

    async def test_pushed_to_user_channel(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(_prefs(new_follower=False))
        redis = AsyncMock()

        result = await create_notification(db, USER_ID, "reward_claimed", "Claimed", "Enjoy", redis=redis)

        assert result is not None
        redis.publish.assert_awaited_once()
        assert redis.publish.await_args.args[0] == f"ws:user:{USER_ID}"
