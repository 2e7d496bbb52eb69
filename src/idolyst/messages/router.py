"""Messaging endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.dependencies import get_current_user
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_publisher
from idolyst.errors import NotFoundError, ValidationFailedError
from idolyst.messages import service
from idolyst.messages.schemas import (
    ConversationResponse,
    MarkReadResponse,
    MessageResponse,
    SendMessageRequest,
    StartConversationRequest,
    UnreadMessagesResponse,
)
from idolyst.realtime.publisher import DeferredPublisher

router = APIRouter(prefix="/api/v1/messages", tags=["Messages"])


@router.get("/unread-count", response_model=UnreadMessagesResponse)
async def unread_count(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return UnreadMessagesResponse(count=await service.get_unread_count(db, user.id))


@router.post("/conversations", response_model=ConversationResponse)
async def start_conversation(
    body: StartConversationRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if body.user_id == user.id:
        raise HTTPException(status_code=400, detail="Cannot start a conversation with yourself")
    if await db.get(Profile, body.user_id) is None:
        raise HTTPException(status_code=404, detail="User not found")
    conversation = await service.start_conversation(db, user.id, body.user_id)
    await db.commit()
    return ConversationResponse(id=conversation.id)


@router.get("/conversations/{conversation_id}", response_model=list[MessageResponse])
async def list_messages(
    conversation_id: str,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        messages = await service.get_messages(db, conversation_id, user.id, limit, offset)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    return [MessageResponse.model_validate(m) for m in messages]


@router.post("/conversations/{conversation_id}", response_model=MessageResponse, status_code=201)
async def send_message(
    conversation_id: str,
    body: SendMessageRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        message = await service.send_message(db, publisher, conversation_id, user.id, body.content)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    await publisher.flush()
    return MessageResponse.model_validate(message)


@router.post("/conversations/{conversation_id}/read", response_model=MarkReadResponse)
async def mark_read(
    conversation_id: str,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    publisher: DeferredPublisher = Depends(get_publisher),
):
    try:
        marked = await service.mark_conversation_read(db, publisher, conversation_id, user.id)
    except NotFoundError as e:
        raise HTTPException(status_code=404, detail="Conversation not found") from e
    await db.commit()
    await publisher.flush()
    return MarkReadResponse(marked=marked)
