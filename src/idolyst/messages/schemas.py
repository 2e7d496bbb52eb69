"""Pydantic models for messaging endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class MessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    conversation_id: str
    sender_id: str
    content: str
    is_read: bool
    created_at: datetime


class SendMessageRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)


class StartConversationRequest(BaseModel):
    user_id: str


class ConversationResponse(BaseModel):
    id: str


class MarkReadResponse(BaseModel):
    marked: int


class UnreadMessagesResponse(BaseModel):
    count: int
