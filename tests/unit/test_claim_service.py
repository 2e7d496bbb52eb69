"""Tests for reward claims and login streak recording."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from conftest import USER_ID, make_db, make_profile, scalar_result
from idolyst.ascend.service import claim_reward, update_login_streak
from idolyst.db.models import LoginStreak, NotificationPreferences, Reward, UserReward, XpTransaction
from idolyst.errors import InsufficientXpError, NotFoundError
from idolyst.notifications.service import DEFAULT_PREFERENCES

REWARD_ID = "44444444-4444-4444-4444-444444444444"
NOW = datetime(2026, 5, 1, 12, tzinfo=timezone.utc)


def _reward(cost: int) -> Reward:
    return Reward(
        id=REWARD_ID,
        slug="profile-boost",
        name="Profile Boost",
        description="Featured for a week",
        xp_cost=cost,
        icon="rocket",
        type="boost",
        is_active=True,
    )


def _prefs() -> NotificationPreferences:
    return NotificationPreferences(user_id=USER_ID, updated_at=NOW, **DEFAULT_PREFERENCES)


@pytest.mark.asyncio
class TestClaimReward:
    async def test_unknown_reward(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(None)
        with pytest.raises(NotFoundError):
            await claim_reward(db, None, USER_ID, REWARD_ID)

    async def test_insufficient_xp_changes_nothing(self) -> None:
        profile = make_profile(xp=300)
        db = make_db()
        db.execute.side_effect = [scalar_result(_reward(500)), scalar_result(profile)]

        with pytest.raises(InsufficientXpError) as exc_info:
            await claim_reward(db, None, USER_ID, REWARD_ID)

        assert (exc_info.value.available, exc_info.value.required) == (300, 500)
        assert profile.xp == 300
        db.add.assert_not_called()

    async def test_claim_deducts_and_records(self) -> None:
        profile = make_profile(xp=1200)
        profile.level = 5
        db = make_db()
        db.execute.side_effect = [
            scalar_result(_reward(500)),
            scalar_result(profile),
            scalar_result(_prefs()),
        ]
        redis = AsyncMock()

        user_reward = await claim_reward(db, redis, USER_ID, REWARD_ID, now=NOW)

        assert profile.xp == 700
        assert profile.level == 4
        added = [call.args[0] for call in db.add.call_args_list]
        ledger = next(obj for obj in added if isinstance(obj, XpTransaction))
        assert ledger.amount == -500
        assert ledger.transaction_type == "reward_claim"
        assert isinstance(user_reward, UserReward)
        assert user_reward.expires_at == NOW + timedelta(days=30)
        assert user_reward.reward.id == REWARD_ID
        redis.publish.assert_awaited_once()
        assert redis.publish.await_args.args[0] == f"ws:user:{USER_ID}"


@pytest.mark.asyncio
class TestLoginStreak:
    today = date(2026, 5, 10)

    def _streak(self, last: date, current: int, best: int) -> LoginStreak:
        return LoginStreak(user_id=USER_ID, last_login_date=last, current_streak=current, max_streak=best)

    async def test_first_login(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(None)
        streak = await update_login_streak(db, USER_ID, self.today)
        assert (streak.current_streak, streak.max_streak) == (1, 1)
        db.add.assert_called_once_with(streak)

    async def test_consecutive_day_extends(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(self._streak(self.today - timedelta(days=1), 4, 4))
        streak = await update_login_streak(db, USER_ID, self.today)
        assert (streak.current_streak, streak.max_streak) == (5, 5)

    async def test_gap_resets_but_keeps_best(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(self._streak(self.today - timedelta(days=3), 4, 9))
        streak = await update_login_streak(db, USER_ID, self.today)
        assert (streak.current_streak, streak.max_streak) == (1, 9)

    async def test_same_day_is_noop(self) -> None:
        db = make_db()
        existing = self._streak(self.today, 2, 2)
        db.execute.return_value = scalar_result(existing)
        streak = await update_login_streak(db, USER_ID, self.today)
        assert streak.current_streak == 2
        db.flush.assert_not_awaited()
