"""Pydantic models for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

EmailDigestFrequency = Literal["daily", "weekly", "never"]


class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: str
    title: str
    content: str
    related_id: str | None = None
    related_type: str | None = None
    action_url: str | None = None
    is_read: bool
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    limit: int
    offset: int


class NotificationGroupResponse(BaseModel):
    date: str
    title: str
    notifications: list[NotificationResponse]


class UnreadCountResponse(BaseModel):
    count: int


class NotificationPreferencesResponse(BaseModel):
    new_follower: bool
    new_message: bool
    mentorship_booking: bool
    mentorship_cancellation: bool
    mentorship_reminder: bool
    pitch_vote: bool
    pitch_comment: bool
    pitch_feedback: bool
    level_up: bool
    badge_unlock: bool
    leaderboard_shift: bool
    launchpad_comment: bool
    launchpad_reaction: bool
    launchpad_repost: bool
    push_enabled: bool
    email_enabled: bool
    email_digest_frequency: EmailDigestFrequency
    muted_until: datetime | None = None
    updated_at: datetime | None = None


class NotificationPreferencesUpdate(BaseModel):
    """Partial update; omitted fields keep their value."""

    model_config = ConfigDict(extra="forbid")

    new_follower: bool | None = None
    new_message: bool | None = None
    mentorship_booking: bool | None = None
    mentorship_cancellation: bool | None = None
    mentorship_reminder: bool | None = None
    pitch_vote: bool | None = None
    pitch_comment: bool | None = None
    pitch_feedback: bool | None = None
    level_up: bool | None = None
    badge_unlock: bool | None = None
    leaderboard_shift: bool | None = None
    launchpad_comment: bool | None = None
    launchpad_reaction: bool | None = None
    launchpad_repost: bool | None = None
    push_enabled: bool | None = None
    email_enabled: bool | None = None
    email_digest_frequency: EmailDigestFrequency | None = None


class MuteRequest(BaseModel):
    hours: int = Field(..., gt=0, le=24 * 30)
