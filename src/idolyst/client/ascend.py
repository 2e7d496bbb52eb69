"""Ascend queries and mutations for the signed-in user."""

from __future__ import annotations

from typing import Any, Literal

import structlog

from idolyst.client.api import ApiError, IdolystApi
from idolyst.client.notices import LogNotifier, Notice, Notifier, error_notice
from idolyst.client.query_cache import MINUTE, QueryClient, QueryResult
from idolyst.client.session import Session
from idolyst.errors import InsufficientXpError

logger = structlog.get_logger()

STATS_STALE_TIME = 5 * MINUTE
LEADERBOARD_STALE_TIME = 15 * MINUTE

USER_STATS = "userStats"
XP_TRANSACTIONS = "xpTransactions"
USER_BADGES = "userBadges"
AVAILABLE_REWARDS = "availableRewards"
USER_REWARDS = "userRewards"
LEADERBOARD = "leaderboard"

# Everything a successful claim can change
CLAIM_INVALIDATES = (USER_STATS, USER_REWARDS, XP_TRANSACTIONS)

TimeRange = Literal["week", "month", "all"]


class NotAuthenticatedError(Exception):
    """A mutation was attempted without a signed-in user."""


class AscendHooks:
    """Cached Ascend reads plus the claim and streak mutations.

    Reads that need a user are disabled while the session has none. Pass
    ``force=True`` to refetch a read regardless of freshness.
    """

    def __init__(
        self,
        api: IdolystApi,
        queries: QueryClient,
        session: Session,
        notifier: Notifier | None = None,
    ) -> None:
        self.api = api
        self.queries = queries
        self.session = session
        self.notifier = notifier or LogNotifier()
        self.claim_pending = False
        self.streak_pending = False

    @property
    def _user_id(self) -> str | None:
        return self.session.user_id if self.session.is_authenticated else None

    # ── Queries ──

    async def user_stats(self, *, force: bool = False) -> QueryResult[dict]:
        return await self.queries.fetch(
            (USER_STATS, self._user_id),
            self.api.get_user_stats,
            stale_time=STATS_STALE_TIME,
            force=force,
            enabled=self._user_id is not None,
        )

    async def recent_xp_transactions(self, limit: int = 5, *, force: bool = False) -> QueryResult[list[dict]]:
        return await self.queries.fetch(
            (XP_TRANSACTIONS, self._user_id, limit),
            lambda: self.api.get_recent_xp_transactions(limit),
            stale_time=STATS_STALE_TIME,
            force=force,
            enabled=self._user_id is not None,
        )

    async def user_badges(self, *, force: bool = False) -> QueryResult[list[dict]]:
        return await self.queries.fetch(
            (USER_BADGES, self._user_id),
            self.api.get_user_badges,
            stale_time=STATS_STALE_TIME,
            force=force,
            enabled=self._user_id is not None,
        )

    async def available_rewards(self, *, force: bool = False) -> QueryResult[list[dict]]:
        return await self.queries.fetch(
            (AVAILABLE_REWARDS,),
            self.api.get_available_rewards,
            stale_time=STATS_STALE_TIME,
            force=force,
        )

    async def user_rewards(self, *, force: bool = False) -> QueryResult[list[dict]]:
        return await self.queries.fetch(
            (USER_REWARDS, self._user_id),
            self.api.get_user_rewards,
            stale_time=STATS_STALE_TIME,
            force=force,
            enabled=self._user_id is not None,
        )

    async def leaderboard(self, time_range: TimeRange = "week", *, force: bool = False) -> QueryResult[dict]:
        return await self.queries.fetch(
            (LEADERBOARD, time_range),
            lambda: self.api.get_leaderboard(time_range),
            stale_time=LEADERBOARD_STALE_TIME,
            force=force,
        )

    # ── Mutations ──

    def _check_affordable(self, user_id: str, reward_id: str) -> None:
        """Raise when the cached balance is known to be below the reward's cost."""
        stats = self.queries.get_query_data((USER_STATS, user_id))
        rewards = self.queries.get_query_data((AVAILABLE_REWARDS,))
        if not stats or not rewards:
            return
        reward = next((r for r in rewards if str(r.get("id")) == reward_id), None)
        if reward is None:
            return
        if stats["xp"] < reward["xp_cost"]:
            raise InsufficientXpError(stats["xp"], reward["xp_cost"])

    async def claim_reward(self, reward_id: str) -> dict[str, Any]:
        """Spend XP on a reward.

        Raises:
            NotAuthenticatedError: without a signed-in user.
            InsufficientXpError: when cached data shows the balance is too low;
                the backend is not called.
            ApiError: when the backend rejects the claim; the cache is untouched.
        """
        user_id = self._user_id
        if user_id is None:
            msg = "User is not authenticated"
            raise NotAuthenticatedError(msg)

        try:
            self._check_affordable(user_id, reward_id)
        except InsufficientXpError as e:
            self.notifier.notify(
                error_notice("Not enough XP", f"You need {e.required - e.available} more XP to claim this reward.")
            )
            raise

        self.claim_pending = True
        try:
            result = await self.api.claim_reward(reward_id)
        except ApiError as e:
            logger.warning("claim_reward_failed", reward_id=reward_id, status=e.status, detail=e.detail)
            self.notifier.notify(
                error_notice("Error claiming reward", "There was an error claiming your reward. Please try again.")
            )
            raise
        finally:
            self.claim_pending = False

        for prefix in CLAIM_INVALIDATES:
            self.queries.invalidate((prefix,))
        self.notifier.notify(Notice("Reward claimed", "Your reward is ready to use."))
        return result

    async def update_login_streak(self) -> dict[str, Any]:
        """Record today's login. Only the stats query is invalidated."""
        user_id = self._user_id
        if user_id is None:
            msg = "User is not authenticated"
            raise NotAuthenticatedError(msg)

        self.streak_pending = True
        try:
            result = await self.api.update_login_streak()
        except ApiError as e:
            logger.warning("update_login_streak_failed", status=e.status, detail=e.detail)
            raise
        finally:
            self.streak_pending = False

        self.queries.invalidate((USER_STATS,))
        return result
