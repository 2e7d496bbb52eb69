"""Badge and reward catalogue seed data."""

from __future__ import annotations

import logging

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.db.models import Badge, Reward
from idolyst.icons import validate_icons

logger = logging.getLogger(__name__)

BADGE_SEED_DATA: list[dict] = [
    {
        "slug": "first_launch",
        "name": "First Launch",
        "description": "Publish your first post on Launchpad",
        "icon": "rocket",
        "category": "launchpad",
        "target_progress": 1,
        "xp_reward": 50,
        "sort_order": 1,
    },
    {
        "slug": "conversation_starter",
        "name": "Conversation Starter",
        "description": "Leave 10 comments on other founders' posts",
        "icon": "message-circle",
        "category": "launchpad",
        "target_progress": 10,
        "xp_reward": 100,
        "sort_order": 2,
    },
    {
        "slug": "networker",
        "name": "Networker",
        "description": "Gain 25 followers",
        "icon": "users",
        "category": "social",
        "target_progress": 25,
        "xp_reward": 150,
        "sort_order": 3,
    },
    {
        "slug": "pitch_perfect",
        "name": "Pitch Perfect",
        "description": "Receive 50 votes on a single pitch",
        "icon": "mic",
        "category": "pitch_hub",
        "target_progress": 50,
        "xp_reward": 250,
        "sort_order": 4,
    },
    {
        "slug": "mentor_in_the_making",
        "name": "Mentor in the Making",
        "description": "Complete 5 mentorship sessions",
        "icon": "calendar-check",
        "category": "mentorship",
        "target_progress": 5,
        "xp_reward": 200,
        "sort_order": 5,
    },
    {
        "slug": "on_fire",
        "name": "On Fire",
        "description": "Log in 7 days in a row",
        "icon": "flame",
        "category": "engagement",
        "target_progress": 7,
        "xp_reward": 100,
        "sort_order": 6,
    },
    {
        "slug": "top_ten",
        "name": "Top Ten",
        "description": "Finish a week in the top 10 of the leaderboard",
        "icon": "trophy",
        "category": "leaderboard",
        "target_progress": 1,
        "xp_reward": 300,
        "sort_order": 7,
    },
]

REWARD_SEED_DATA: list[dict] = [
    {
        "slug": "profile_spotlight",
        "name": "Profile Spotlight",
        "description": "Feature your profile on the Launchpad sidebar for 24 hours",
        "xp_cost": 200,
        "icon": "sparkles",
        "type": "visibility",
    },
    {
        "slug": "custom_theme",
        "name": "Custom Profile Theme",
        "description": "Unlock an exclusive colour theme for your profile",
        "xp_cost": 350,
        "icon": "palette",
        "type": "cosmetic",
    },
    {
        "slug": "pitch_boost",
        "name": "Pitch Boost",
        "description": "Pin one pitch to the top of Pitch Hub for a day",
        "xp_cost": 500,
        "icon": "zap",
        "type": "visibility",
    },
    {
        "slug": "mentor_discount",
        "name": "Mentor Session Discount",
        "description": "20% off your next paid mentorship session",
        "xp_cost": 1000,
        "icon": "ticket",
        "type": "discount",
    },
    {
        "slug": "verified_founder",
        "name": "Verified Founder Badge",
        "description": "Show a verified mark next to your name",
        "xp_cost": 2500,
        "icon": "badge-check",
        "type": "status",
    },
]


def validate_catalogue() -> None:
    """Raise IconResolutionError if any seeded badge or reward names an unknown icon."""
    validate_icons(item["icon"] for item in BADGE_SEED_DATA)
    validate_icons(item["icon"] for item in REWARD_SEED_DATA)


async def seed_catalogue(db: AsyncSession) -> int:
    """Upsert badges and rewards. Returns the number of rows seeded."""
    validate_catalogue()

    seeded = 0
    for badge_data in BADGE_SEED_DATA:
        stmt = pg_insert(Badge).values(**badge_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "icon": stmt.excluded.icon,
                "category": stmt.excluded.category,
                "target_progress": stmt.excluded.target_progress,
                "xp_reward": stmt.excluded.xp_reward,
                "sort_order": stmt.excluded.sort_order,
            },
        )
        await db.execute(stmt)
        seeded += 1

    for reward_data in REWARD_SEED_DATA:
        stmt = pg_insert(Reward).values(**reward_data)
        stmt = stmt.on_conflict_do_update(
            index_elements=["slug"],
            set_={
                "name": stmt.excluded.name,
                "description": stmt.excluded.description,
                "xp_cost": stmt.excluded.xp_cost,
                "icon": stmt.excluded.icon,
                "type": stmt.excluded.type,
            },
        )
        await db.execute(stmt)
        seeded += 1

    await db.commit()
    logger.info("Seeded %d badges and %d rewards", len(BADGE_SEED_DATA), len(REWARD_SEED_DATA))
    return seeded
