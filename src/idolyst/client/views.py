"""Display-ready view models built from API payloads."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

from idolyst.ascend.progression import compute_progress
from idolyst.common.formatting import format_compact_number, format_relative_date, get_initials, truncate_string
from idolyst.icons import notification_icon, resolve_icon
from idolyst.notifications.service import group_by_day

MENTOR_CARD_TAGS = 3


def badge_card(badge: dict[str, Any]) -> dict[str, Any]:
    return {
        "id": badge["id"],
        "name": badge["name"],
        "description": badge["description"],
        "icon": resolve_icon(badge["icon"]).value,
        "is_earned": badge["is_earned"],
        "progress_label": f"{badge['progress']}/{badge['target']}",
        "progress_percent": badge["progress_percent"],
        "earned_on": format_relative_date(_as_datetime(badge["earned_at"])) if badge.get("earned_at") else None,
    }


def reward_card(reward: dict[str, Any], current_xp: int) -> dict[str, Any]:
    cost = reward["xp_cost"]
    return {
        "id": reward["id"],
        "name": reward["name"],
        "description": reward["description"],
        "icon": resolve_icon(reward["icon"]).value,
        "cost_label": f"{format_compact_number(cost)} XP",
        "can_claim": current_xp >= cost,
        "xp_needed": max(0, cost - current_xp),
    }


def xp_progress(stats: dict[str, Any]) -> dict[str, Any]:
    progress = compute_progress(stats["level"], stats["xp"])
    return {
        "level": stats["level"],
        "xp_label": f"{format_compact_number(stats['xp'])} XP",
        "progress_percentage": round(progress["progress_percentage"]),
        "xp_to_next_level": progress["xp_to_next_level"],
        "next_level_xp": progress["next_level_xp"],
    }


def leaderboard_row(entry: dict[str, Any], current_user_id: str | None = None) -> dict[str, Any]:
    profile = entry.get("profile") or {}
    name = profile.get("full_name") or profile.get("username") or "Anonymous"
    change = entry.get("rank_change", 0)
    if change > 0:
        trend = resolve_icon("arrow-up").value
    elif change < 0:
        trend = resolve_icon("arrow-down").value
    else:
        trend = None
    return {
        "rank": entry["rank"],
        "name": truncate_string(name, 24),
        "initials": get_initials(name),
        "avatar_url": profile.get("avatar_url"),
        "level": profile.get("level", 1),
        "xp_label": format_compact_number(entry["xp"]),
        "rank_change": change,
        "trend_icon": trend,
        "is_current_user": entry.get("user_id") == current_user_id,
    }


def notification_groups(notifications: list[dict[str, Any]], today: date | None = None) -> list[dict[str, Any]]:
    """Today / Yesterday / Earlier groups, each item carrying its icon."""
    items = [{**n, "icon": notification_icon(n["type"]).value} for n in notifications]
    return group_by_day(items, today)


def _as_datetime(value: datetime | str) -> datetime:
    return datetime.fromisoformat(value) if isinstance(value, str) else value


def mentor_card(mentor: dict[str, Any]) -> dict[str, Any]:
    profile = mentor.get("profile") or {}
    name = profile.get("full_name") or profile.get("username") or "Mentor"
    expertise = mentor.get("expertise") or []
    hidden = len(expertise) - MENTOR_CARD_TAGS
    return {
        "id": mentor["id"],
        "name": name,
        "initials": get_initials(name),
        "avatar_url": profile.get("avatar_url"),
        "is_featured": mentor.get("is_featured", False),
        "bio": mentor.get("bio", ""),
        "expertise": expertise[:MENTOR_CARD_TAGS],
        "more_expertise_label": f"+{hidden} more" if hidden > 0 else None,
        "rating_label": f"{mentor.get('avg_rating', 0):.1f}",
        "reviews_label": f"({mentor.get('total_reviews', 0)})",
        "sessions_label": f"{mentor.get('total_sessions', 0)} sessions",
        "experience_label": f"{mentor.get('years_experience', 0)} years exp.",
        "rate_label": f"${_plain_number(mentor['hourly_rate'])}/hour",
        "profile_url": f"/mentor-space/{mentor['id']}",
    }


def review_card(review: dict[str, Any]) -> dict[str, Any]:
    reviewer = review.get("reviewer") or {}
    name = reviewer.get("full_name") or reviewer.get("username") or "Anonymous"
    rating = review["rating"]
    created = review.get("created_at")
    return {
        "id": review["id"],
        "reviewer_name": name,
        "initials": get_initials(name),
        "avatar_url": reviewer.get("avatar_url"),
        "stars": [i < rating for i in range(5)],
        "date_label": _review_date(_as_datetime(created)) if created else "",
        "comment": review.get("comment"),
    }


def _review_date(value: datetime) -> str:
    return f"{value:%b} {value.day}, {value.year}"


def _plain_number(value: float | str) -> str:
    """50.0 -> '50', 49.5 -> '49.5'."""
    number = float(value)
    return str(int(number)) if number.is_integer() else f"{number:g}"
