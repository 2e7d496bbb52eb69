"""Notification creation, delivery preferences and inbox operations.

Notifications are:
1. Filtered by the recipient's per-category toggle (off = not created)
2. Persisted in the database
3. Pushed over WebSocket (Redis pub/sub -> WS bridge) unless push is disabled
   or the recipient is muted
"""

from __future__ import annotations

import json
import logging
import math
from datetime import date, datetime, timedelta, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.db.models import Notification, NotificationPreferences
from idolyst.errors import ValidationFailedError
from idolyst.realtime.events import row_snapshot
from idolyst.realtime.publisher import publish_change

logger = logging.getLogger(__name__)

# Types with a user-facing toggle; the column name equals the type.
PREFERENCE_TYPES: tuple[str, ...] = (
    "new_follower",
    "new_message",
    "mentorship_booking",
    "mentorship_cancellation",
    "mentorship_reminder",
    "pitch_vote",
    "pitch_comment",
    "pitch_feedback",
    "level_up",
    "badge_unlock",
    "leaderboard_shift",
    "launchpad_comment",
    "launchpad_reaction",
    "launchpad_repost",
)

# Transactional types are always delivered.
VALID_TYPES = frozenset(PREFERENCE_TYPES) | {"payment_success", "reward_claimed"}

DIGEST_FREQUENCIES = ("daily", "weekly", "never")

DEFAULT_PREFERENCES: dict[str, Any] = {
    **{name: True for name in PREFERENCE_TYPES},
    "push_enabled": True,
    "email_enabled": True,
    "email_digest_frequency": "daily",
    "muted_until": None,
}

EDITABLE_FIELDS = frozenset(DEFAULT_PREFERENCES) - {"muted_until"}


def is_muted(preferences: dict, now: datetime | None = None) -> bool:
    muted_until = preferences.get("muted_until")
    if muted_until is None:
        return False
    if isinstance(muted_until, str):
        muted_until = datetime.fromisoformat(muted_until)
    return muted_until > (now or datetime.now(timezone.utc))


def mute_remaining_hours(preferences: dict, now: datetime | None = None) -> int:
    """Whole hours left on the mute, rounded up; 0 when not muted."""
    if not is_muted(preferences, now):
        return 0
    muted_until = preferences["muted_until"]
    if isinstance(muted_until, str):
        muted_until = datetime.fromisoformat(muted_until)
    remaining = muted_until - (now or datetime.now(timezone.utc))
    return math.ceil(remaining.total_seconds() / 3600)


def should_deliver(preferences: dict, type_: str) -> bool:
    """Whether a notification of ``type_`` is created at all."""
    if type_ not in PREFERENCE_TYPES:
        return True
    return bool(preferences.get(type_, DEFAULT_PREFERENCES[type_]))


def should_push(preferences: dict, now: datetime | None = None) -> bool:
    """Whether a created notification is also pushed in real time."""
    return bool(preferences.get("push_enabled", True)) and not is_muted(preferences, now)


def preferences_to_dict(prefs: NotificationPreferences) -> dict[str, Any]:
    data = {key: getattr(prefs, key) for key in DEFAULT_PREFERENCES}
    if data["email_digest_frequency"] not in DIGEST_FREQUENCIES:
        data["email_digest_frequency"] = "daily"
    data["updated_at"] = prefs.updated_at
    return data


async def get_or_create_preferences(db: AsyncSession, user_id: str) -> NotificationPreferences:
    """Get the user's preference row, inserting defaults on first access."""
    result = await db.execute(
        select(NotificationPreferences).where(NotificationPreferences.user_id == user_id)
    )
    prefs = result.scalar_one_or_none()
    if prefs is None:
        now = datetime.now(timezone.utc)
        prefs = NotificationPreferences(user_id=user_id, created_at=now, updated_at=now, **DEFAULT_PREFERENCES)
        db.add(prefs)
        await db.flush()
    return prefs


async def fetch_notification_preferences(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Preferences with an unknown digest frequency repaired to ``daily``."""
    prefs = await get_or_create_preferences(db, user_id)
    return preferences_to_dict(prefs)


async def _save_preferences(
    db: AsyncSession,
    redis: object | None,
    prefs: NotificationPreferences,
    changes: dict[str, Any],
) -> dict[str, Any]:
    old = row_snapshot(prefs)
    changed = False
    for key, value in changes.items():
        if getattr(prefs, key) != value:
            setattr(prefs, key, value)
            changed = True
    # A no-op save keeps updated_at so listeners can recognise their own echo.
    if changed:
        prefs.updated_at = datetime.now(timezone.utc)
    await db.flush()
    await publish_change(redis, "notification_preferences", [prefs.user_id], "UPDATE", row_snapshot(prefs), old)
    return preferences_to_dict(prefs)


async def update_notification_preferences(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    changes: dict[str, Any],
) -> dict[str, Any]:
    """Partial update of toggles, channels and digest frequency.

    Raises:
        ValidationFailedError: for an unknown field or digest frequency.
    """
    unknown = set(changes) - EDITABLE_FIELDS
    if unknown:
        raise ValidationFailedError(f"Unknown preference: {sorted(unknown)[0]}", field=sorted(unknown)[0])
    frequency = changes.get("email_digest_frequency")
    if frequency is not None and frequency not in DIGEST_FREQUENCIES:
        raise ValidationFailedError(
            f"Invalid email digest frequency: {frequency}", field="email_digest_frequency"
        )

    prefs = await get_or_create_preferences(db, user_id)
    return await _save_preferences(db, redis, prefs, changes)


async def mute_notifications(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    hours: int,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Mute pushes for ``hours`` hours.

    Raises:
        ValidationFailedError: when ``hours`` is not positive.
    """
    if hours <= 0:
        raise ValidationFailedError("Mute duration must be positive", field="hours")
    muted_until = (now or datetime.now(timezone.utc)) + timedelta(hours=hours)
    prefs = await get_or_create_preferences(db, user_id)
    return await _save_preferences(db, redis, prefs, {"muted_until": muted_until})


async def unmute_notifications(db: AsyncSession, redis: object | None, user_id: str) -> dict[str, Any]:
    prefs = await get_or_create_preferences(db, user_id)
    return await _save_preferences(db, redis, prefs, {"muted_until": None})


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    return {
        "id": notification.id,
        "type": notification.type,
        "title": notification.title,
        "content": notification.content,
        "related_id": notification.related_id,
        "related_type": notification.related_type,
        "action_url": notification.action_url,
        "is_read": notification.is_read,
        "created_at": notification.created_at.isoformat() if notification.created_at else None,
    }


async def push_notification_to_user(redis: object | None, notification: Notification) -> None:
    """Publish a notification to ``ws:user:{user_id}``; the bridge fans it out."""
    if redis is None:
        return
    ws_payload = {"event": "notification", "data": notification_to_dict(notification)}
    try:
        await redis.publish(  # type: ignore[union-attr]
            f"ws:user:{notification.user_id}",
            json.dumps(ws_payload),
        )
    except Exception:
        logger.warning("Failed to push notification via ws:user:%s", notification.user_id, exc_info=True)


async def create_notification(
    db: AsyncSession,
    user_id: str,
    type_: str,
    title: str,
    content: str,
    related_id: str | None = None,
    related_type: str | None = None,
    action_url: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,  # noqa: ANN401
) -> Notification | None:
    """Create a notification and push it via WebSocket.

    Returns None when the recipient switched this category off.
    """
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}")

    prefs = preferences_to_dict(await get_or_create_preferences(db, user_id))
    if not should_deliver(prefs, type_):
        return None

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        content=content,
        related_id=related_id,
        related_type=related_type,
        action_url=action_url,
        is_read=False,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    if should_push(prefs):
        await push_notification_to_user(redis, notification)

    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: str,
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[Notification], int]:
    """Most recent first, with the total count."""
    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: str, notification_id: str) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: str) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
    )
    return result.scalar_one()


def group_by_day(items: list[dict], today: date | None = None) -> list[dict]:
    """Split notification dicts (newest first) into Today / Yesterday / Earlier.

    Empty groups are omitted.
    """
    today = today or datetime.now(timezone.utc).date()
    yesterday = today - timedelta(days=1)
    buckets: dict[str, list[dict]] = {"Today": [], "Yesterday": [], "Earlier": []}
    for item in items:
        created = item["created_at"]
        if isinstance(created, str):
            created = datetime.fromisoformat(created)
        day = created.date()
        if day == today:
            buckets["Today"].append(item)
        elif day == yesterday:
            buckets["Yesterday"].append(item)
        else:
            buckets["Earlier"].append(item)

    keys = {"Today": today.isoformat(), "Yesterday": yesterday.isoformat(), "Earlier": "earlier"}
    return [
        {"date": keys[title], "title": title, "notifications": entries}
        for title, entries in buckets.items()
        if entries
    ]
