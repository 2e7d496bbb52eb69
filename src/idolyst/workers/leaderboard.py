"""Leaderboard snapshot arq worker.

Runs once a day shortly after midnight UTC. Each run records every active
user's weekly and monthly rank together with the change since the previous
snapshot, which is what ``GET /ascend/stats`` reports as rank movement.
Users whose weekly rank moved by at least ``SHIFT_NOTIFY_THRESHOLD`` places
get a ``leaderboard_shift`` notification.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timezone

import redis.asyncio as aioredis
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.ascend.service import snapshot_leaderboard
from idolyst.config import get_settings
from idolyst.database import close_db, init_db, session_scope
from idolyst.db.models import LeaderboardHistory
from idolyst.notifications.service import create_notification
from idolyst.realtime.publisher import DeferredPublisher
from idolyst.redis_client import create_redis

logger = logging.getLogger(__name__)

SHIFT_NOTIFY_THRESHOLD = 3


async def notify_rank_shifts(db: AsyncSession, redis: object | None, today: date) -> int:
    """Send a notification to each user whose weekly rank moved noticeably today."""
    result = await db.execute(
        select(LeaderboardHistory).where(
            LeaderboardHistory.snapshot_date == today,
            LeaderboardHistory.weekly_rank.is_not(None),
            func.abs(LeaderboardHistory.weekly_change) >= SHIFT_NOTIFY_THRESHOLD,
        )
    )
    sent = 0
    for row in result.scalars():
        direction = "up" if row.weekly_change > 0 else "down"
        places = abs(row.weekly_change)
        notification = await create_notification(
            db,
            user_id=row.user_id,
            type_="leaderboard_shift",
            title="Leaderboard update",
            content=f"You moved {direction} {places} places to #{row.weekly_rank} this week.",
            action_url="/ascend/leaderboard",
            metadata={"weekly_rank": row.weekly_rank, "weekly_change": row.weekly_change},
            redis=redis,
        )
        if notification is not None:
            sent += 1
    return sent


async def snapshot_leaderboard_job(ctx: dict) -> int:
    """Persist today's leaderboard snapshot. Returns the number of rows written."""
    today = datetime.now(timezone.utc).date()
    publisher = DeferredPublisher(ctx.get("redis"))
    async with session_scope() as db:
        written = await snapshot_leaderboard(db, today)
        notified = await notify_rank_shifts(db, publisher, today)
    await publisher.flush()
    logger.info("Leaderboard snapshot %s: %d rows, %d shift notifications", today, written, notified)
    return written


async def leaderboard_startup(ctx: dict) -> None:
    """Initialize Redis + DB connections on worker startup."""
    settings = get_settings()
    await init_db(settings.database_url, pool_size=5)
    ctx["redis"] = create_redis(settings.redis_url, max_connections=10)
    logger.info("Leaderboard worker started")


async def leaderboard_shutdown(ctx: dict) -> None:
    """Clean up on worker shutdown."""
    redis_client: aioredis.Redis | None = ctx.get("redis")
    if redis_client:
        await redis_client.aclose()
    await close_db()
    logger.info("Leaderboard worker shut down")
