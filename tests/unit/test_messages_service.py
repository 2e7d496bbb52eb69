"""Tests for direct message operations."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest

from conftest import OTHER_USER_ID, USER_ID, make_db, scalar_result
from idolyst.db.models import Conversation, Message
from idolyst.errors import NotFoundError, ValidationFailedError
from idolyst.messages.service import (
    MAX_MESSAGE_LENGTH,
    get_messages,
    mark_conversation_read,
    send_message,
    start_conversation,
)

CONVERSATION_ID = "33333333-3333-3333-3333-333333333333"


def scalars_result(values: list) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = values
    return result


def _message(sender: str, content: str, is_read: bool = False) -> Message:
    now = datetime(2026, 5, 1, tzinfo=timezone.utc)
    return Message(
        id=f"m-{content}",
        conversation_id=CONVERSATION_ID,
        sender_id=sender,
        content=content,
        is_read=is_read,
        created_at=now,
        updated_at=now,
    )


@pytest.mark.asyncio
class TestSendMessage:
    async def test_empty_content(self) -> None:
        with pytest.raises(ValidationFailedError, match="empty"):
            await send_message(make_db(), None, CONVERSATION_ID, USER_ID, "   ")

    async def test_too_long(self) -> None:
        with pytest.raises(ValidationFailedError):
            await send_message(make_db(), None, CONVERSATION_ID, USER_ID, "x" * (MAX_MESSAGE_LENGTH + 1))

    async def test_not_a_participant(self) -> None:
        db = make_db()
        db.execute.return_value = scalars_result([OTHER_USER_ID])
        with pytest.raises(NotFoundError):
            await send_message(db, None, CONVERSATION_ID, USER_ID, "hello")

    async def test_published_to_every_participant(self) -> None:
        db = make_db()
        db.execute.side_effect = [scalars_result([USER_ID, OTHER_USER_ID]), MagicMock()]
        redis = AsyncMock()

        message = await send_message(db, redis, CONVERSATION_ID, USER_ID, "  hello  ")

        assert message.content == "hello"
        db.add.assert_called_once_with(message)
        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert channels == [f"realtime:messages:{USER_ID}", f"realtime:messages:{OTHER_USER_ID}"]
        event = json.loads(redis.publish.await_args_list[0].args[1])
        assert event["event"] == "INSERT"
        assert event["new"]["sender_id"] == USER_ID


@pytest.mark.asyncio
async def test_get_messages_oldest_first() -> None:
    db = make_db()
    newest_first = [_message(OTHER_USER_ID, "second"), _message(USER_ID, "first")]
    db.execute.side_effect = [scalars_result([USER_ID, OTHER_USER_ID]), scalars_result(newest_first)]
    messages = await get_messages(db, CONVERSATION_ID, USER_ID)
    assert [m.content for m in messages] == ["first", "second"]


@pytest.mark.asyncio
async def test_mark_read_flips_and_publishes_updates() -> None:
    db = make_db()
    unread = [_message(OTHER_USER_ID, "a"), _message(OTHER_USER_ID, "b")]
    db.execute.side_effect = [scalars_result([USER_ID, OTHER_USER_ID]), scalars_result(unread), MagicMock()]
    redis = AsyncMock()

    count = await mark_conversation_read(db, redis, CONVERSATION_ID, USER_ID)

    assert count == 2
    assert all(m.is_read for m in unread)
    assert redis.publish.await_count == 4
    event = json.loads(redis.publish.await_args_list[0].args[1])
    assert event["event"] == "UPDATE"
    assert event["old"]["is_read"] is False
    assert event["new"]["is_read"] is True


@pytest.mark.asyncio
class TestStartConversation:
    async def test_returns_existing(self) -> None:
        db = make_db()
        existing = Conversation(id=CONVERSATION_ID)
        db.execute.return_value = scalar_result(CONVERSATION_ID)
        db.get.return_value = existing
        assert await start_conversation(db, USER_ID, OTHER_USER_ID) is existing
        db.add.assert_not_called()

    async def test_creates_with_both_participants(self) -> None:
        db = make_db()
        db.execute.return_value = scalar_result(None)
        await start_conversation(db, USER_ID, OTHER_USER_ID)
        added = [call.args[0] for call in db.add.call_args_list]
        assert isinstance(added[0], Conversation)
        assert sorted(p.user_id for p in added[1:]) == sorted([USER_ID, OTHER_USER_ID])
