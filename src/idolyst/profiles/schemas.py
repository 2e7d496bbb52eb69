"""Pydantic models for profile and privacy endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict

ProfileVisibility = Literal["public", "followers", "private"]
MessagingPermissions = Literal["everyone", "followers", "none"]
ActivityVisibility = Literal["public", "followers", "private"]


class PrivacySettingsResponse(BaseModel):
    profile_visibility: ProfileVisibility
    messaging_permissions: MessagingPermissions
    activity_visibility: ActivityVisibility
    updated_at: datetime | None = None


class PrivacySettingsUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    profile_visibility: ProfileVisibility | None = None
    messaging_permissions: MessagingPermissions | None = None
    activity_visibility: ActivityVisibility | None = None


class ProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str | None = None
    full_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    xp: int
    level: int
    roles: list[str]


class UsernameAvailabilityResponse(BaseModel):
    username: str
    available: bool


class AvatarResponse(BaseModel):
    avatar_url: str
