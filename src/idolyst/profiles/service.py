"""Profile, privacy settings, username and avatar operations."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.schemas import ProfileForm
from idolyst.db.models import PrivacySettings, Profile
from idolyst.errors import NotFoundError, ValidationFailedError
from idolyst.realtime.events import row_snapshot
from idolyst.realtime.publisher import publish_change
from idolyst.storage.service import StorageService, build_object_path

logger = logging.getLogger(__name__)

PROFILE_VISIBILITY = ("public", "followers", "private")
MESSAGING_PERMISSIONS = ("everyone", "followers", "none")
ACTIVITY_VISIBILITY = ("public", "followers", "private")

PRIVACY_CHOICES: dict[str, tuple[str, ...]] = {
    "profile_visibility": PROFILE_VISIBILITY,
    "messaging_permissions": MESSAGING_PERMISSIONS,
    "activity_visibility": ACTIVITY_VISIBILITY,
}

DEFAULT_PRIVACY: dict[str, str] = {
    "profile_visibility": "public",
    "messaging_permissions": "everyone",
    "activity_visibility": "public",
}


def sanitize_privacy(values: dict[str, Any]) -> dict[str, str]:
    """Replace missing or unknown stored values with the defaults."""
    clean: dict[str, str] = {}
    for field, choices in PRIVACY_CHOICES.items():
        value = values.get(field)
        clean[field] = value if value in choices else DEFAULT_PRIVACY[field]
    return clean


def privacy_to_dict(settings: PrivacySettings) -> dict[str, Any]:
    data: dict[str, Any] = sanitize_privacy({f: getattr(settings, f) for f in PRIVACY_CHOICES})
    data["updated_at"] = settings.updated_at
    return data


async def _get_or_create_privacy(db: AsyncSession, user_id: str) -> PrivacySettings:
    result = await db.execute(select(PrivacySettings).where(PrivacySettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = PrivacySettings(
            user_id=user_id,
            updated_at=datetime.now(timezone.utc),
            **DEFAULT_PRIVACY,
        )
        db.add(settings)
        await db.flush()
    return settings


async def fetch_privacy_settings(db: AsyncSession, user_id: str) -> dict[str, Any]:
    """Current privacy settings, created with defaults on first access."""
    settings = await _get_or_create_privacy(db, user_id)
    return privacy_to_dict(settings)


async def update_privacy_settings(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    changes: dict[str, Any],
) -> dict[str, Any]:
    """Apply a partial update and publish the change to the user's devices.

    Raises:
        ValidationFailedError: for an unknown field or an out-of-range value.
    """
    for field, value in changes.items():
        choices = PRIVACY_CHOICES.get(field)
        if choices is None:
            msg = f"Unknown privacy setting: {field}"
            raise ValidationFailedError(msg, field=field)
        if value not in choices:
            msg = f"Invalid value for {field}: {value}"
            raise ValidationFailedError(msg, field=field)

    settings = await _get_or_create_privacy(db, user_id)
    old = row_snapshot(settings)
    changed = False
    for field, value in changes.items():
        if getattr(settings, field) != value:
            setattr(settings, field, value)
            changed = True
    if changed:
        settings.updated_at = datetime.now(timezone.utc)
    await db.flush()
    await publish_change(redis, "privacy_settings", [user_id], "UPDATE", row_snapshot(settings), old)
    return privacy_to_dict(settings)


async def check_username_availability(db: AsyncSession, username: str, user_id: str | None = None) -> bool:
    """True when nobody but ``user_id`` holds ``username`` (case-insensitive).

    Lookup failures report the name as unavailable.
    """
    stmt = select(Profile.id).where(func.lower(Profile.username) == username.lower())
    if user_id is not None:
        stmt = stmt.where(Profile.id != user_id)
    try:
        result = await db.execute(stmt.limit(1))
    except SQLAlchemyError:
        logger.exception("Username availability check failed for %s", username)
        return False
    return result.scalar_one_or_none() is None


async def get_profile(db: AsyncSession, user_id: str) -> Profile:
    profile = await db.get(Profile, user_id)
    if profile is None:
        msg = f"Profile {user_id} not found"
        raise NotFoundError(msg)
    return profile


async def update_profile(db: AsyncSession, user_id: str, form: ProfileForm) -> Profile:
    """Save username, full name and bio.

    Raises:
        NotFoundError: if the profile does not exist.
        ValidationFailedError: if the username is taken.
    """
    profile = await get_profile(db, user_id)
    if form.username != profile.username and not await check_username_availability(db, form.username, user_id):
        msg = "Username is already taken"
        raise ValidationFailedError(msg, field="username")

    profile.username = form.username
    profile.full_name = form.full_name
    profile.bio = form.bio
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Profile %s updated", user_id)
    return profile


async def upload_avatar(
    db: AsyncSession,
    storage: StorageService,
    user_id: str,
    data: bytes,
    content_type: str,
) -> str:
    """Store an avatar image under the user's folder and save its public URL.

    Raises:
        StorageError: if the file breaks a bucket rule or the upload fails.
        NotFoundError: if the profile does not exist.
    """
    profile = await get_profile(db, user_id)
    path = build_object_path(user_id, content_type, prefix="avatars")
    url = await storage.upload(user_id, path, data, content_type)
    profile.avatar_url = url
    profile.updated_at = datetime.now(timezone.utc)
    await db.flush()
    return url
