"""Tests for routing Redis pub/sub messages to sockets."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from idolyst.ws.bridge import PubSubBridge
from idolyst.ws.manager import ConnectionManager


@pytest.fixture
def connections() -> MagicMock:
    mgr = MagicMock(spec=ConnectionManager)
    mgr.send_to_user = AsyncMock(return_value=1)
    mgr.send_to_user_direct = AsyncMock(return_value=2)
    return mgr


@pytest.fixture
def bridge(connections: MagicMock) -> PubSubBridge:
    return PubSubBridge(MagicMock(), connections)


@pytest.mark.asyncio
class TestRoute:
    async def test_notification_goes_to_all_user_sockets(self, bridge: PubSubBridge, connections: MagicMock) -> None:
        message = {
            "channel": b"ws:user:u1",
            "data": json.dumps({"event": "notification", "data": {"id": "n1"}}).encode(),
        }
        assert await bridge.route(message) == 2
        connections.send_to_user_direct.assert_awaited_once_with(
            "u1", {"channel": "notifications", "type": "notification", "payload": {"id": "n1"}}
        )

    async def test_change_event_goes_to_realtime_channel(self, bridge: PubSubBridge, connections: MagicMock) -> None:
        event = {"event": "UPDATE", "table": "privacy_settings", "new": {}, "old": {}}
        await bridge.route({"channel": "realtime:privacy_settings:u1", "data": json.dumps(event)})
        connections.send_to_user.assert_awaited_once_with("u1", "realtime", event)

    async def test_level_up_goes_to_ascend_channel(self, bridge: PubSubBridge, connections: MagicMock) -> None:
        await bridge.route({"channel": "pubsub:level_up", "data": json.dumps({"user_id": "u1", "level": 4})})
        connections.send_to_user.assert_awaited_once_with(
            "u1", "ascend", {"type": "level_up", "user_id": "u1", "level": 4}
        )

    async def test_level_up_without_user_dropped(self, bridge: PubSubBridge, connections: MagicMock) -> None:
        assert await bridge.route({"channel": "pubsub:level_up", "data": json.dumps({"level": 4})}) == 0
        connections.send_to_user.assert_not_awaited()

    @pytest.mark.parametrize("data", ["not json", "[1, 2]", b"\xff\xfe"])
    async def test_invalid_payload(self, bridge: PubSubBridge, connections: MagicMock, data: object) -> None:
        assert await bridge.route({"channel": "ws:user:u1", "data": data}) == 0
        connections.send_to_user_direct.assert_not_awaited()

    async def test_unknown_channel(self, bridge: PubSubBridge) -> None:
        assert await bridge.route({"channel": "other", "data": "{}"}) == 0
