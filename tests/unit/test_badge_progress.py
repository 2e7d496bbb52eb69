"""Tests for badge progress and the one-time badge award."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, patch

import pytest

from conftest import USER_ID, make_db, scalar_result
from idolyst.ascend.service import advance_badge_progress
from idolyst.db.models import Badge, BadgeProgress

BADGE_ID = "55555555-5555-5555-5555-555555555555"
EARNED_AT = datetime(2026, 4, 1, tzinfo=timezone.utc)


def _badge(xp_reward: int = 100) -> Badge:
    return Badge(
        id=BADGE_ID,
        slug="on_fire",
        name="On Fire",
        description="Log in 7 days in a row",
        icon="flame",
        category="engagement",
        target_progress=7,
        xp_reward=xp_reward,
        is_active=True,
    )


def _progress(current: int, earned: bool = False) -> BadgeProgress:
    return BadgeProgress(
        user_id=USER_ID,
        badge_id=BADGE_ID,
        current_progress=current,
        target_progress=7,
        earned_at=EARNED_AT if earned else None,
    )


@pytest.mark.asyncio
class TestAdvanceBadgeProgress:
    async def test_unknown_badge_returns_none(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(None)
        assert await advance_badge_progress(db, None, USER_ID, "missing") is None
        db.flush.assert_not_called()

    async def test_progress_below_target(self) -> None:
        db = make_db()
        progress = _progress(3)
        db.execute.side_effect = [scalar_result(_badge()), scalar_result(progress)]

        with (
            patch("idolyst.ascend.service.grant_xp", new=AsyncMock()) as grant,
            patch("idolyst.ascend.service.create_notification", new=AsyncMock()) as notify,
        ):
            result = await advance_badge_progress(db, None, USER_ID, "on_fire")

        assert result is progress
        assert progress.current_progress == 4
        assert progress.earned_at is None
        grant.assert_not_awaited()
        notify.assert_not_awaited()

    async def test_crossing_target_awards_once(self) -> None:
        db = make_db()
        progress = _progress(6)
        db.execute.side_effect = [scalar_result(_badge(xp_reward=100)), scalar_result(progress)]

        with (
            patch("idolyst.ascend.service.grant_xp", new=AsyncMock()) as grant,
            patch("idolyst.ascend.service.create_notification", new=AsyncMock()) as notify,
        ):
            await advance_badge_progress(db, None, USER_ID, "on_fire")

        assert progress.current_progress == 7
        assert progress.earned_at is not None
        grant.assert_awaited_once()
        assert grant.await_args.args[3] == 100
        assert grant.await_args.kwargs["transaction_type"] == "badge_earned"
        notify.assert_awaited_once()
        assert notify.await_args.args[2] == "badge_unlock"

    async def test_already_earned_keeps_counting_without_award(self) -> None:
        db = make_db()
        progress = _progress(7, earned=True)
        earned_at = progress.earned_at
        db.execute.side_effect = [scalar_result(_badge()), scalar_result(progress)]

        with (
            patch("idolyst.ascend.service.grant_xp", new=AsyncMock()) as grant,
            patch("idolyst.ascend.service.create_notification", new=AsyncMock()) as notify,
        ):
            await advance_badge_progress(db, None, USER_ID, "on_fire")

        assert progress.current_progress == 8
        assert progress.earned_at is earned_at
        grant.assert_not_awaited()
        notify.assert_not_awaited()

    async def test_zero_reward_badge_only_notifies(self) -> None:
        db = make_db()
        progress = _progress(6)
        db.execute.side_effect = [scalar_result(_badge(xp_reward=0)), scalar_result(progress)]

        with (
            patch("idolyst.ascend.service.grant_xp", new=AsyncMock()) as grant,
            patch("idolyst.ascend.service.create_notification", new=AsyncMock()) as notify,
        ):
            await advance_badge_progress(db, None, USER_ID, "on_fire")

        grant.assert_not_awaited()
        notify.assert_awaited_once()
