"""Ascend progression: XP ledger, badges, rewards, leaderboard and login streaks.

All XP changes go through this module. The profile's ``xp`` column is the
running balance; ``xp_transactions`` is the append-only ledger behind it.
"""

from __future__ import annotations

import json
import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Literal

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.ascend.progression import compute_progress, level_for_xp
from idolyst.config import get_settings
from idolyst.db.models import (
    Badge,
    BadgeProgress,
    LeaderboardHistory,
    LoginStreak,
    Profile,
    Reward,
    UserReward,
    XpTransaction,
)
from idolyst.errors import InsufficientXpError, NotFoundError
from idolyst.notifications.service import create_notification

logger = logging.getLogger(__name__)

TimeRange = Literal["week", "month", "all"]

TIME_RANGE_DAYS: dict[str, int] = {"week": 7, "month": 30}


async def _get_profile(db: AsyncSession, user_id: str, *, for_update: bool = False) -> Profile:
    stmt = select(Profile).where(Profile.id == user_id)
    if for_update:
        stmt = stmt.with_for_update().execution_options(populate_existing=True)
    result = await db.execute(stmt)
    profile = result.scalar_one_or_none()
    if profile is None:
        raise NotFoundError(f"Profile not found: {user_id}")
    return profile


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------


async def get_user_stats(db: AsyncSession, user_id: str) -> dict[str, Any] | None:
    """Aggregate XP, level, rank, streak and badge count for one user."""
    result = await db.execute(select(Profile).where(Profile.id == user_id))
    profile = result.scalar_one_or_none()
    if profile is None:
        return None

    level = level_for_xp(profile.xp)
    progress = compute_progress(level, profile.xp)

    snapshot = (
        await db.execute(
            select(LeaderboardHistory.weekly_rank, LeaderboardHistory.weekly_change)
            .where(LeaderboardHistory.user_id == user_id)
            .order_by(LeaderboardHistory.snapshot_date.desc())
            .limit(1)
        )
    ).first()

    streak = (
        await db.execute(select(LoginStreak.current_streak).where(LoginStreak.user_id == user_id))
    ).scalar_one_or_none()

    badges_count = (
        await db.execute(
            select(func.count())
            .select_from(BadgeProgress)
            .where(BadgeProgress.user_id == user_id, BadgeProgress.earned_at.is_not(None))
        )
    ).scalar_one()

    return {
        "xp": profile.xp,
        "level": level,
        "rank": snapshot.weekly_rank if snapshot else None,
        "rank_change": (snapshot.weekly_change or 0) if snapshot else 0,
        "streak_days": streak or 0,
        "badges_count": badges_count,
        "next_level_xp": progress["next_level_xp"],
        "progress_to_next_level": progress["progress_percentage"],
    }


async def get_recent_xp_transactions(db: AsyncSession, user_id: str, limit: int = 5) -> list[XpTransaction]:
    result = await db.execute(
        select(XpTransaction)
        .where(XpTransaction.user_id == user_id)
        .order_by(XpTransaction.created_at.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


# ---------------------------------------------------------------------------
# XP grants
# ---------------------------------------------------------------------------


async def grant_xp(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    amount: int,
    description: str,
    transaction_type: str,
    reference_type: str | None = None,
    reference_id: str | None = None,
) -> XpTransaction:
    """Append a positive XP transaction and raise the balance.

    Emits a ``level_up`` notification when the derived level increases.
    """
    if amount <= 0:
        raise ValueError("XP grants must be positive")

    profile = await _get_profile(db, user_id, for_update=True)
    now = datetime.now(timezone.utc)

    entry = XpTransaction(
        user_id=user_id,
        amount=amount,
        description=description,
        transaction_type=transaction_type,
        reference_type=reference_type,
        reference_id=reference_id,
        created_at=now,
    )
    db.add(entry)

    old_level = level_for_xp(profile.xp)
    profile.xp += amount
    profile.level = level_for_xp(profile.xp)
    profile.updated_at = now
    await db.flush()

    if profile.level > old_level:
        await _emit_level_up(db, redis, user_id, old_level, profile.level)

    return entry


async def _emit_level_up(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    old_level: int,
    new_level: int,
) -> None:
    await create_notification(
        db,
        user_id,
        "level_up",
        title="Level Up!",
        content=f"You reached level {new_level}.",
        action_url="/ascend",
        metadata={"old_level": old_level, "new_level": new_level},
        redis=redis,
    )
    if redis is not None:
        try:
            await redis.publish(  # type: ignore[union-attr]
                "pubsub:level_up",
                json.dumps({"user_id": user_id, "old_level": old_level, "new_level": new_level}),
            )
        except Exception:
            logger.warning("Failed to publish level_up broadcast", exc_info=True)


# ---------------------------------------------------------------------------
# Badges
# ---------------------------------------------------------------------------


def is_badge_earned(current_progress: int, target_progress: int) -> bool:
    return current_progress >= target_progress


def badge_progress_percent(current_progress: int, target_progress: int) -> int:
    if target_progress <= 0:
        return 100
    return round(current_progress / target_progress * 100)


async def get_user_badges_with_progress(db: AsyncSession, user_id: str) -> list[dict[str, Any]]:
    """Earned badges first, then badges still in progress."""
    result = await db.execute(
        select(BadgeProgress)
        .where(BadgeProgress.user_id == user_id)
        .order_by(BadgeProgress.earned_at.desc().nulls_last(), BadgeProgress.created_at)
    )
    earned: list[dict[str, Any]] = []
    in_progress: list[dict[str, Any]] = []
    for row in result.scalars().unique():
        item = {
            "id": row.badge_id,
            "name": row.badge.name,
            "description": row.badge.description,
            "icon": row.badge.icon,
            "is_earned": row.earned_at is not None,
            "earned_at": row.earned_at,
            "progress": row.current_progress,
            "target": row.target_progress,
        }
        if row.earned_at is not None:
            item["progress_percent"] = 100
            earned.append(item)
        else:
            item["progress_percent"] = badge_progress_percent(row.current_progress, row.target_progress)
            in_progress.append(item)
    return earned + in_progress


async def advance_badge_progress(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    badge_slug: str,
    increment: int = 1,
) -> BadgeProgress | None:
    """Add ``increment`` to a badge's progress, awarding it when the target is reached.

    Returns None when the badge does not exist or is inactive. Progress keeps
    counting after the badge is earned; the award (XP and notification) happens once.
    """
    badge = (
        await db.execute(select(Badge).where(Badge.slug == badge_slug, Badge.is_active.is_(True)))
    ).scalar_one_or_none()
    if badge is None:
        logger.warning("Badge not found: %s", badge_slug)
        return None

    progress = (
        await db.execute(
            select(BadgeProgress)
            .where(BadgeProgress.user_id == user_id, BadgeProgress.badge_id == badge.id)
            .with_for_update()
        )
    ).scalar_one_or_none()

    now = datetime.now(timezone.utc)
    if progress is None:
        try:
            async with db.begin_nested():
                progress = BadgeProgress(
                    user_id=user_id,
                    badge_id=badge.id,
                    current_progress=0,
                    target_progress=badge.target_progress,
                    created_at=now,
                    updated_at=now,
                )
                db.add(progress)
        except IntegrityError:
            # Another worker created the row first.
            progress = (
                await db.execute(
                    select(BadgeProgress)
                    .where(BadgeProgress.user_id == user_id, BadgeProgress.badge_id == badge.id)
                    .with_for_update()
                )
            ).scalar_one()

    progress.current_progress += increment
    progress.updated_at = now
    newly_earned = progress.earned_at is None and is_badge_earned(
        progress.current_progress, progress.target_progress
    )
    if newly_earned:
        progress.earned_at = now
    await db.flush()

    if newly_earned:
        if badge.xp_reward > 0:
            await grant_xp(
                db,
                redis,
                user_id,
                badge.xp_reward,
                description=f"Earned badge: {badge.name}",
                transaction_type="badge_earned",
                reference_type="badge",
                reference_id=badge.id,
            )
        await create_notification(
            db,
            user_id,
            "badge_unlock",
            title="Badge Unlocked!",
            content=f"You earned the {badge.name} badge.",
            related_id=badge.id,
            related_type="badge",
            action_url="/ascend",
            redis=redis,
        )

    return progress


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


async def get_available_rewards(db: AsyncSession) -> list[Reward]:
    result = await db.execute(
        select(Reward).where(Reward.is_active.is_(True)).order_by(Reward.xp_cost.asc())
    )
    return list(result.scalars().all())


async def get_user_rewards(db: AsyncSession, user_id: str) -> list[UserReward]:
    result = await db.execute(
        select(UserReward).where(UserReward.user_id == user_id).order_by(UserReward.claimed_at.desc())
    )
    return list(result.scalars().unique().all())


async def claim_reward(
    db: AsyncSession,
    redis: object | None,
    user_id: str,
    reward_id: str,
    now: datetime | None = None,
) -> UserReward:
    """Spend XP on a reward.

    The profile row is locked for the duration of the caller's transaction, so
    the balance check, the deduction, the ledger entry and the claim row are
    committed together or not at all.

    Raises:
        NotFoundError: unknown or inactive reward, or unknown profile.
        InsufficientXpError: balance below the reward's cost.
    """
    reward = (
        await db.execute(select(Reward).where(Reward.id == reward_id, Reward.is_active.is_(True)))
    ).scalar_one_or_none()
    if reward is None:
        raise NotFoundError(f"Reward not found: {reward_id}")

    profile = await _get_profile(db, user_id, for_update=True)
    if profile.xp < reward.xp_cost:
        raise InsufficientXpError(available=profile.xp, required=reward.xp_cost)

    now = now or datetime.now(timezone.utc)
    profile.xp -= reward.xp_cost
    profile.level = level_for_xp(profile.xp)
    profile.updated_at = now

    db.add(
        XpTransaction(
            user_id=user_id,
            amount=-reward.xp_cost,
            description=f"Claimed reward: {reward.name}",
            transaction_type="reward_claim",
            reference_type="reward",
            reference_id=reward.id,
            created_at=now,
        )
    )
    user_reward = UserReward(
        user_id=user_id,
        reward_id=reward.id,
        claimed_at=now,
        expires_at=now + timedelta(days=get_settings().reward_expiry_days),
        is_used=False,
    )
    user_reward.reward = reward
    db.add(user_reward)
    await db.flush()

    await create_notification(
        db,
        user_id,
        "reward_claimed",
        title="Reward Claimed!",
        content=f"You claimed {reward.name} for {reward.xp_cost} XP.",
        related_id=user_reward.id,
        related_type="user_reward",
        action_url="/ascend",
        redis=redis,
    )
    logger.info("Reward %s claimed by %s for %d XP", reward.id, user_id, reward.xp_cost)
    return user_reward


# ---------------------------------------------------------------------------
# Leaderboard
# ---------------------------------------------------------------------------


async def get_leaderboard(
    db: AsyncSession,
    time_range: TimeRange = "week",
    limit: int | None = None,
    now: datetime | None = None,
) -> list[dict[str, Any]]:
    """Rank users for a time range.

    ``week``/``month`` rank by XP earned inside the window (spends excluded);
    ``all`` ranks by current balance. Rank changes come from the latest stored
    snapshot when one exists.
    """
    limit = limit or get_settings().leaderboard_size
    now = now or datetime.now(timezone.utc)

    if time_range == "all":
        score = Profile.xp.label("score")
        stmt = select(Profile, score).order_by(Profile.xp.desc(), Profile.created_at.asc()).limit(limit)
    else:
        since = now - timedelta(days=TIME_RANGE_DAYS[time_range])
        earned = (
            select(XpTransaction.user_id, func.sum(XpTransaction.amount).label("score"))
            .where(XpTransaction.created_at >= since, XpTransaction.amount > 0)
            .group_by(XpTransaction.user_id)
            .subquery()
        )
        stmt = (
            select(Profile, earned.c.score)
            .join(earned, earned.c.user_id == Profile.id)
            .order_by(earned.c.score.desc(), Profile.created_at.asc())
            .limit(limit)
        )

    rows = (await db.execute(stmt)).all()
    user_ids = [row[0].id for row in rows]

    changes: dict[str, int] = {}
    if user_ids:
        latest = (await db.execute(select(func.max(LeaderboardHistory.snapshot_date)))).scalar_one_or_none()
        if latest is not None:
            change_col = (
                LeaderboardHistory.monthly_change if time_range == "month" else LeaderboardHistory.weekly_change
            )
            snap = await db.execute(
                select(LeaderboardHistory.user_id, change_col).where(
                    LeaderboardHistory.snapshot_date == latest,
                    LeaderboardHistory.user_id.in_(user_ids),
                )
            )
            changes = {uid: change or 0 for uid, change in snap.all()}

    entries = []
    for rank, (profile, score) in enumerate(rows, start=1):
        entries.append({
            "rank": rank,
            "user_id": profile.id,
            "xp": int(score or 0),
            "rank_change": changes.get(profile.id, 0),
            "profile": {
                "id": profile.id,
                "username": profile.username,
                "full_name": profile.full_name,
                "avatar_url": profile.avatar_url,
                "level": level_for_xp(profile.xp),
            },
        })
    return entries


def _rank_map(scores: dict[str, int]) -> dict[str, int]:
    ordered = sorted(scores.items(), key=lambda item: (-item[1], item[0]))
    return {user_id: index for index, (user_id, _) in enumerate(ordered, start=1)}


async def snapshot_leaderboard(db: AsyncSession, today: date | None = None) -> int:
    """Persist today's weekly and monthly ranks with the change since the last snapshot.

    A positive change means the user moved up. Returns the number of rows written.
    """
    today = today or datetime.now(timezone.utc).date()
    end = datetime.combine(today + timedelta(days=1), datetime.min.time(), tzinfo=timezone.utc)

    async def window_scores(days: int) -> dict[str, int]:
        since = end - timedelta(days=days)
        result = await db.execute(
            select(XpTransaction.user_id, func.sum(XpTransaction.amount))
            .where(
                XpTransaction.created_at >= since,
                XpTransaction.created_at < end,
                XpTransaction.amount > 0,
            )
            .group_by(XpTransaction.user_id)
        )
        return {uid: int(total) for uid, total in result.all()}

    weekly = _rank_map(await window_scores(TIME_RANGE_DAYS["week"]))
    monthly = _rank_map(await window_scores(TIME_RANGE_DAYS["month"]))

    previous_date = (
        await db.execute(
            select(func.max(LeaderboardHistory.snapshot_date)).where(LeaderboardHistory.snapshot_date < today)
        )
    ).scalar_one_or_none()
    previous: dict[str, LeaderboardHistory] = {}
    if previous_date is not None:
        prev_rows = await db.execute(
            select(LeaderboardHistory).where(LeaderboardHistory.snapshot_date == previous_date)
        )
        previous = {row.user_id: row for row in prev_rows.scalars()}

    user_ids = set(weekly) | set(monthly)
    if not user_ids:
        return 0
    balances = dict(
        (await db.execute(select(Profile.id, Profile.xp).where(Profile.id.in_(user_ids)))).all()
    )

    written = 0
    for user_id in user_ids:
        prev = previous.get(user_id)
        weekly_rank = weekly.get(user_id)
        monthly_rank = monthly.get(user_id)
        existing = (
            await db.execute(
                select(LeaderboardHistory).where(
                    LeaderboardHistory.user_id == user_id,
                    LeaderboardHistory.snapshot_date == today,
                )
            )
        ).scalar_one_or_none()
        row = existing or LeaderboardHistory(user_id=user_id, snapshot_date=today)
        row.xp = balances.get(user_id, 0)
        row.weekly_rank = weekly_rank
        row.monthly_rank = monthly_rank
        row.weekly_change = rank_change(prev.weekly_rank if prev else None, weekly_rank)
        row.monthly_change = rank_change(prev.monthly_rank if prev else None, monthly_rank)
        if existing is None:
            db.add(row)
        written += 1

    await db.flush()
    return written


def rank_change(previous: int | None, current: int | None) -> int:
    """Places gained since the previous snapshot (positive = moved up)."""
    if previous is None or current is None:
        return 0
    return previous - current


# ---------------------------------------------------------------------------
# Login streaks
# ---------------------------------------------------------------------------


def next_streak(last_login: date | None, current: int, today: date) -> int:
    """Streak after logging in on ``today``."""
    if last_login == today:
        return max(current, 1)
    if last_login == today - timedelta(days=1):
        return current + 1
    return 1


async def update_login_streak(db: AsyncSession, user_id: str, today: date | None = None) -> LoginStreak:
    """Record a login for ``today`` (UTC). Logging in twice on one day changes nothing."""
    today = today or datetime.now(timezone.utc).date()
    now = datetime.now(timezone.utc)

    streak = (
        await db.execute(select(LoginStreak).where(LoginStreak.user_id == user_id).with_for_update())
    ).scalar_one_or_none()
    if streak is None:
        streak = LoginStreak(
            user_id=user_id,
            last_login_date=today,
            current_streak=1,
            max_streak=1,
            created_at=now,
            updated_at=now,
        )
        db.add(streak)
        await db.flush()
        return streak

    if streak.last_login_date == today:
        return streak

    streak.current_streak = next_streak(streak.last_login_date, streak.current_streak, today)
    streak.max_streak = max(streak.max_streak, streak.current_streak)
    streak.last_login_date = today
    streak.updated_at = now
    await db.flush()
    return streak
