"""Closed icon catalogue.

Badges, rewards and notification types reference icons by a kebab-case name.
Every name must resolve to a known glyph; an unknown name is a catalogue
error and raises instead of rendering nothing.
"""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class IconResolutionError(LookupError):
    """Raised when an icon name is not part of the catalogue."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Unknown icon name: {name!r}")


class IconName(str, Enum):
    """Icon identifiers, valued by the glyph component they render."""

    ARROW_DOWN = "ArrowDown"
    ARROW_UP = "ArrowUp"
    AWARD = "Award"
    BADGE_CHECK = "BadgeCheck"
    BELL = "Bell"
    CALENDAR = "Calendar"
    CALENDAR_CHECK = "CalendarCheck"
    CROWN = "Crown"
    FLAME = "Flame"
    GIFT = "Gift"
    HEART = "Heart"
    LIGHTBULB = "Lightbulb"
    MEDAL = "Medal"
    MESSAGE_CIRCLE = "MessageCircle"
    MESSAGE_SQUARE = "MessageSquare"
    MIC = "Mic"
    PALETTE = "Palette"
    REPEAT = "Repeat"
    ROCKET = "Rocket"
    SHIELD = "Shield"
    SPARKLES = "Sparkles"
    STAR = "Star"
    THUMBS_UP = "ThumbsUp"
    TICKET = "Ticket"
    TRENDING_UP = "TrendingUp"
    TROPHY = "Trophy"
    USER_PLUS = "UserPlus"
    USERS = "Users"
    ZAP = "Zap"
    ALERT_CIRCLE = "AlertCircle"

    @property
    def slug(self) -> str:
        return self.name.lower().replace("_", "-")


_BY_SLUG: dict[str, IconName] = {icon.slug: icon for icon in IconName}


def resolve_icon(name: str) -> IconName:
    """Resolve a kebab- or snake-case icon name.

    Raises:
        IconResolutionError: if the name is empty or not in the catalogue.
    """
    key = (name or "").strip().lower().replace("_", "-")
    icon = _BY_SLUG.get(key)
    if icon is None:
        raise IconResolutionError(name)
    return icon


def validate_icons(names: Iterable[str]) -> list[IconName]:
    """Resolve every name, raising on the first unknown one."""
    return [resolve_icon(name) for name in names]


NOTIFICATION_ICONS: dict[str, IconName] = {
    "new_follower": IconName.USERS,
    "new_message": IconName.MESSAGE_SQUARE,
    "mentorship_booking": IconName.CALENDAR,
    "mentorship_cancellation": IconName.CALENDAR,
    "mentorship_reminder": IconName.BELL,
    "pitch_vote": IconName.THUMBS_UP,
    "pitch_comment": IconName.MESSAGE_CIRCLE,
    "pitch_feedback": IconName.STAR,
    "level_up": IconName.TRENDING_UP,
    "badge_unlock": IconName.AWARD,
    "leaderboard_shift": IconName.TROPHY,
    "launchpad_comment": IconName.MESSAGE_CIRCLE,
    "launchpad_reaction": IconName.HEART,
    "launchpad_repost": IconName.REPEAT,
    "payment_success": IconName.BADGE_CHECK,
    "reward_claimed": IconName.GIFT,
}


def notification_icon(notification_type: str) -> IconName:
    """Icon for a notification type.

    Raises:
        IconResolutionError: for a type with no icon mapping.
    """
    try:
        return NOTIFICATION_ICONS[notification_type]
    except KeyError:
        raise IconResolutionError(notification_type) from None
