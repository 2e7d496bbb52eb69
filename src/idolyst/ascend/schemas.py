"""Pydantic response models for Ascend endpoints."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict


# --- Stats / XP ---


class UserStatsResponse(BaseModel):
    xp: int
    level: int
    rank: int | None = None
    rank_change: int = 0
    streak_days: int = 0
    badges_count: int = 0
    next_level_xp: float
    progress_to_next_level: float


class XpTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    amount: int
    description: str
    transaction_type: str
    reference_type: str | None = None
    reference_id: str | None = None
    created_at: datetime


class LevelEntry(BaseModel):
    level: int
    xp_required: int


class AllLevelsResponse(BaseModel):
    levels: list[LevelEntry]


# --- Badges ---


class BadgeProgressResponse(BaseModel):
    id: str
    name: str
    description: str
    icon: str
    is_earned: bool
    earned_at: datetime | None = None
    progress: int
    target: int
    progress_percent: int


# --- Rewards ---


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    description: str
    xp_cost: int
    icon: str
    type: str
    is_active: bool


class UserRewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    reward_id: str
    claimed_at: datetime
    expires_at: datetime | None = None
    is_used: bool
    used_at: datetime | None = None
    reward: RewardResponse | None = None


class ClaimRewardResponse(BaseModel):
    user_reward: UserRewardResponse
    xp: int


# --- Leaderboard ---


class LeaderboardProfile(BaseModel):
    id: str
    username: str | None = None
    full_name: str | None = None
    avatar_url: str | None = None
    level: int


class LeaderboardEntryResponse(BaseModel):
    rank: int
    user_id: str
    xp: int
    rank_change: int = 0
    profile: LeaderboardProfile


class LeaderboardResponse(BaseModel):
    time_range: str
    entries: list[LeaderboardEntryResponse]


# --- Streak ---


class LoginStreakResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    last_login_date: date | None = None
    current_streak: int
    max_streak: int
