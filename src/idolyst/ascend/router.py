"""Ascend API endpoints."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.ascend import service
from idolyst.ascend.progression import level_table
from idolyst.ascend.schemas import (
    AllLevelsResponse,
    BadgeProgressResponse,
    ClaimRewardResponse,
    LeaderboardEntryResponse,
    LeaderboardResponse,
    LevelEntry,
    LoginStreakResponse,
    RewardResponse,
    UserRewardResponse,
    UserStatsResponse,
    XpTransactionResponse,
)
from idolyst.auth.dependencies import get_current_user
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_publisher
from idolyst.errors import InsufficientXpError, NotFoundError
from idolyst.realtime.publisher import DeferredPublisher

router = APIRouter(prefix="/api/v1/ascend", tags=["Ascend"])


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """XP threshold per level."""
    return AllLevelsResponse(levels=[LevelEntry(**entry) for entry in level_table()])


@router.get("/stats", response_model=UserStatsResponse)
async def get_stats(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    stats = await service.get_user_stats(db, user.id)
    if stats is None:
        raise HTTPException(status_code=404, detail="Profile not found")
    return UserStatsResponse(**stats)


@router.get("/xp/transactions", response_model=list[XpTransactionResponse])
async def list_xp_transactions(
    limit: int = Query(5, ge=1, le=100),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await service.get_recent_xp_transactions(db, user.id, limit)
    return [XpTransactionResponse.model_validate(row) for row in rows]


@router.get("/badges", response_model=list[BadgeProgressResponse])
async def list_badges(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Earned badges first, then in-progress ones."""
    items = await service.get_user_badges_with_progress(db, user.id)
    return [BadgeProgressResponse(**item) for item in items]


@router.get("/rewards", response_model=list[RewardResponse])
async def list_rewards(db: AsyncSession = Depends(get_session)):
    rewards = await service.get_available_rewards(db)
    return [RewardResponse.model_validate(r) for r in rewards]


@router.get("/rewards/mine", response_model=list[UserRewardResponse])
async def list_my_rewards(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    rows = await service.get_user_rewards(db, user.id)
    return [UserRewardResponse.model_validate(r) for r in rows]


@router.post("/rewards/{reward_id}/claim", response_model=ClaimRewardResponse)
async def claim_reward(
    reward_id: str,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    """Spend XP on a reward. 409 when the balance is too low."""
    try:
        user_reward = await service.claim_reward(db, publisher, user.id, reward_id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e
    except InsufficientXpError as e:
        await db.rollback()
        raise HTTPException(
            status_code=409,
            detail=f"You need {e.required - e.available} more XP to claim this reward.",
        ) from e
    await db.commit()
    await publisher.flush()
    return ClaimRewardResponse(user_reward=UserRewardResponse.model_validate(user_reward), xp=user.xp)


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    time_range: Literal["week", "month", "all"] = Query("week"),
    db: AsyncSession = Depends(get_session),
):
    entries = await service.get_leaderboard(db, time_range)
    return LeaderboardResponse(
        time_range=time_range,
        entries=[LeaderboardEntryResponse(**entry) for entry in entries],
    )


@router.post("/streak", response_model=LoginStreakResponse)
async def record_login(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Record today's login and return the streak."""
    streak = await service.update_login_streak(db, user.id)
    await db.commit()
    return LoginStreakResponse.model_validate(streak)
