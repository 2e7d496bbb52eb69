"""Tests for change-feed subscriptions and dispatch."""

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from conftest import RecordingFeed
from idolyst.realtime.events import ChangeEvent, channel_for, parse_channel
from idolyst.realtime.feed import RedisChangeFeed

USER = "user-1"


def _update(table: str = "privacy_settings") -> ChangeEvent:
    return ChangeEvent(event="UPDATE", table=table, new={"user_id": USER}, old={"user_id": USER})


def test_channel_names() -> None:
    assert channel_for("messages", USER) == "realtime:messages:user-1"
    assert parse_channel("realtime:messages:user-1") == ("messages", "user-1")
    assert parse_channel("ws:user:user-1") is None


@pytest.mark.asyncio
class TestSubscriptions:
    async def test_channel_opened_once_and_closed_with_last(self) -> None:
        feed = RecordingFeed()
        first = await feed.subscribe("messages", USER, lambda e: None)
        second = await feed.subscribe("messages", USER, lambda e: None)
        assert feed.opened == ["realtime:messages:user-1"]

        await first.release()
        assert feed.closed == []
        await second.release()
        assert feed.closed == ["realtime:messages:user-1"]
        assert feed.subscription_count == 0

    async def test_release_twice_is_noop(self) -> None:
        feed = RecordingFeed()
        sub = await feed.subscribe("messages", USER, lambda e: None)
        await sub.release()
        await sub.release()
        assert feed.closed == ["realtime:messages:user-1"]

    async def test_scoped_channel_released_on_exception(self) -> None:
        feed = RecordingFeed()
        with pytest.raises(RuntimeError):
            async with feed.channel("privacy_settings", USER, lambda e: None) as sub:
                assert sub.active
                raise RuntimeError("boom")
        assert not sub.active
        assert feed.subscription_count == 0
        assert feed.closed == ["realtime:privacy_settings:user-1"]


@pytest.mark.asyncio
class TestDispatch:
    async def test_filters_by_event_kind(self) -> None:
        feed = RecordingFeed()
        updates = AsyncMock()
        inserts = MagicMock()
        await feed.subscribe("messages", USER, updates, events=["UPDATE"])
        await feed.subscribe("messages", USER, inserts, events=["INSERT"])

        delivered = await feed.dispatch(channel_for("messages", USER), _update("messages"))

        assert delivered == 1
        updates.assert_awaited_once()
        inserts.assert_not_called()

    async def test_released_subscription_gets_nothing(self) -> None:
        feed = RecordingFeed()
        callback = MagicMock()
        sub = await feed.subscribe("privacy_settings", USER, callback)
        await sub.release()
        assert await feed.dispatch(channel_for("privacy_settings", USER), _update()) == 0
        callback.assert_not_called()

    async def test_failing_callback_does_not_stop_others(self) -> None:
        feed = RecordingFeed()
        good = MagicMock(return_value=None)
        await feed.subscribe("privacy_settings", USER, MagicMock(side_effect=ValueError("bad")))
        await feed.subscribe("privacy_settings", USER, good)
        assert await feed.dispatch(channel_for("privacy_settings", USER), _update()) == 1
        good.assert_called_once()


def _redis_with_pubsub() -> tuple[MagicMock, MagicMock]:
    async def _idle(**kwargs: object) -> None:
        await asyncio.sleep(0.01)

    pubsub = MagicMock()
    pubsub.subscribe = AsyncMock()
    pubsub.unsubscribe = AsyncMock()
    pubsub.aclose = AsyncMock()
    pubsub.get_message = AsyncMock(side_effect=_idle)
    redis = MagicMock()
    redis.pubsub.return_value = pubsub
    return redis, pubsub


@pytest.mark.asyncio
class TestRedisChangeFeed:
    async def test_handle_message_dispatches(self) -> None:
        redis, pubsub = _redis_with_pubsub()
        feed = RedisChangeFeed(redis)
        received: list[ChangeEvent] = []
        await feed.subscribe("privacy_settings", USER, received.append)
        pubsub.subscribe.assert_awaited_once_with("realtime:privacy_settings:user-1")

        message = {
            "channel": b"realtime:privacy_settings:user-1",
            "data": _update().model_dump_json().encode(),
        }
        assert await feed.handle_message(message) == 1
        assert received[0].table == "privacy_settings"

        await feed.close()
        pubsub.unsubscribe.assert_awaited_once_with("realtime:privacy_settings:user-1")
        pubsub.aclose.assert_awaited_once()

    async def test_invalid_payload_ignored(self) -> None:
        redis, _ = _redis_with_pubsub()
        feed = RedisChangeFeed(redis)
        assert await feed.handle_message({"channel": "realtime:x:y", "data": "not json"}) == 0
        bad_event = json.dumps({"event": "TRUNCATE", "table": "x"})
        assert await feed.handle_message({"channel": "realtime:x:y", "data": bad_event}) == 0

    async def test_undecodable_payload_ignored(self) -> None:
        redis, _ = _redis_with_pubsub()
        feed = RedisChangeFeed(redis)
        assert await feed.handle_message({"channel": b"realtime:messages:x", "data": b"\xff\xfe"}) == 0

    async def test_dropped_connection_still_closes_pubsub(self) -> None:
        redis, pubsub = _redis_with_pubsub()
        pubsub.get_message = AsyncMock(side_effect=RedisConnectionError("connection lost"))
        feed = RedisChangeFeed(redis)
        await feed.subscribe("messages", USER, lambda event: None)
        for _ in range(3):
            await asyncio.sleep(0)

        await feed.close()

        pubsub.get_message.assert_awaited()
        pubsub.aclose.assert_awaited_once()

    async def test_failed_unsubscribe_still_closes_pubsub(self) -> None:
        redis, pubsub = _redis_with_pubsub()
        pubsub.unsubscribe.side_effect = RedisConnectionError("connection lost")
        feed = RedisChangeFeed(redis)
        await feed.subscribe("messages", USER, lambda event: None)

        with pytest.raises(RedisConnectionError):
            await feed.close()

        pubsub.aclose.assert_awaited_once()
