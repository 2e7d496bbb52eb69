"""Direct messages: sending, read receipts and unread counts.

Every message write is published as a ``messages`` change event to each
participant of the conversation so clients can recount unread messages.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.db.models import Conversation, ConversationParticipant, Message
from idolyst.errors import NotFoundError, ValidationFailedError
from idolyst.realtime.events import row_snapshot
from idolyst.realtime.publisher import publish_change

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 5000


async def get_participant_ids(db: AsyncSession, conversation_id: str) -> list[str]:
    result = await db.execute(
        select(ConversationParticipant.user_id).where(ConversationParticipant.conversation_id == conversation_id)
    )
    return list(result.scalars().all())


async def _require_participant(db: AsyncSession, conversation_id: str, user_id: str) -> list[str]:
    participants = await get_participant_ids(db, conversation_id)
    if user_id not in participants:
        msg = f"Conversation {conversation_id} not found"
        raise NotFoundError(msg)
    return participants


async def start_conversation(db: AsyncSession, user_id: str, other_user_id: str) -> Conversation:
    """Return the existing one-to-one conversation between two users, or create it."""
    mine = select(ConversationParticipant.conversation_id).where(ConversationParticipant.user_id == user_id)
    result = await db.execute(
        select(ConversationParticipant.conversation_id)
        .where(
            ConversationParticipant.user_id == other_user_id,
            ConversationParticipant.conversation_id.in_(mine),
        )
        .limit(1)
    )
    existing_id = result.scalar_one_or_none()
    if existing_id is not None:
        conversation = await db.get(Conversation, existing_id)
        if conversation is not None:
            return conversation

    conversation = Conversation()
    db.add(conversation)
    await db.flush()
    for participant in dict.fromkeys((user_id, other_user_id)):
        db.add(ConversationParticipant(conversation_id=conversation.id, user_id=participant))
    await db.flush()
    return conversation


async def send_message(
    db: AsyncSession,
    redis: object | None,
    conversation_id: str,
    sender_id: str,
    content: str,
) -> Message:
    """Append a message and notify the conversation's participants.

    Raises:
        NotFoundError: if the sender is not in the conversation.
        ValidationFailedError: for empty or oversized content.
    """
    content = content.strip()
    if not content:
        msg = "Message cannot be empty"
        raise ValidationFailedError(msg, field="content")
    if len(content) > MAX_MESSAGE_LENGTH:
        msg = f"Message must be less than {MAX_MESSAGE_LENGTH} characters"
        raise ValidationFailedError(msg, field="content")

    participants = await _require_participant(db, conversation_id, sender_id)
    now = datetime.now(timezone.utc)
    message = Message(
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        is_read=False,
        created_at=now,
        updated_at=now,
    )
    db.add(message)
    await db.execute(update(Conversation).where(Conversation.id == conversation_id).values(updated_at=now))
    await db.flush()

    await publish_change(redis, "messages", participants, "INSERT", row_snapshot(message))
    return message


async def get_messages(
    db: AsyncSession,
    conversation_id: str,
    user_id: str,
    limit: int = 50,
    offset: int = 0,
) -> list[Message]:
    """Messages in a conversation the user belongs to, oldest first."""
    await _require_participant(db, conversation_id, user_id)
    result = await db.execute(
        select(Message)
        .where(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(reversed(result.scalars().all()))


async def mark_conversation_read(
    db: AsyncSession,
    redis: object | None,
    conversation_id: str,
    user_id: str,
) -> int:
    """Mark other participants' messages read and stamp ``last_read_at``.

    Returns the number of messages flipped.
    """
    participants = await _require_participant(db, conversation_id, user_id)
    now = datetime.now(timezone.utc)

    result = await db.execute(
        select(Message).where(
            Message.conversation_id == conversation_id,
            Message.sender_id != user_id,
            Message.is_read.is_(False),
        )
    )
    unread = list(result.scalars().all())
    changes: list[tuple[dict, dict]] = []
    for message in unread:
        old = row_snapshot(message)
        message.is_read = True
        message.updated_at = now
        changes.append((old, row_snapshot(message)))

    await db.execute(
        update(ConversationParticipant)
        .where(
            ConversationParticipant.conversation_id == conversation_id,
            ConversationParticipant.user_id == user_id,
        )
        .values(last_read_at=now)
    )
    await db.flush()

    for old, new in changes:
        await publish_change(redis, "messages", participants, "UPDATE", new, old)

    if unread:
        logger.info("Marked %d messages read in %s for %s", len(unread), conversation_id, user_id)
    return len(unread)


async def get_unread_count(db: AsyncSession, user_id: str) -> int:
    """Unread messages sent to the user across all of their conversations."""
    my_conversations = select(ConversationParticipant.conversation_id).where(
        ConversationParticipant.user_id == user_id
    )
    result = await db.execute(
        select(func.count())
        .select_from(Message)
        .where(
            Message.conversation_id.in_(my_conversations),
            Message.sender_id != user_id,
            Message.is_read.is_(False),
        )
    )
    return result.scalar_one()
