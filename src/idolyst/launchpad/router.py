"""Launchpad endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.dependencies import get_current_user
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.errors import ValidationFailedError
from idolyst.launchpad import service

router = APIRouter(prefix="/api/v1/launchpad", tags=["Launchpad"])


class TrendingTopicResponse(BaseModel):
    tag: str
    count: int
    category: str
    is_featured: bool


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    author_id: str
    category: str
    content: str
    tags: list[str] | None = None
    media_url: str | None = None
    created_at: datetime | None = None


class CreatePostRequest(BaseModel):
    content: str = Field(..., min_length=1, max_length=3000)
    category: str = Field("general", max_length=64)
    tags: list[str] = Field(default_factory=list)
    media_url: str | None = None


@router.get("/trending", response_model=list[TrendingTopicResponse])
async def trending_topics(
    limit: int = Query(10, ge=1, le=50),
    db: AsyncSession = Depends(get_session),
):
    topics = await service.get_trending_topics(db, limit)
    return [TrendingTopicResponse(**t) for t in topics]


@router.get("/posts", response_model=list[PostResponse])
async def list_posts(
    category: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    sort: Literal["newest", "oldest"] = "newest",
    db: AsyncSession = Depends(get_session),
):
    """A page of posts; a short page means the feed is exhausted."""
    posts = await service.list_posts(db, category, page, limit, sort)
    return [PostResponse.model_validate(p) for p in posts]


@router.post("/posts", response_model=PostResponse, status_code=201)
async def create_post(
    body: CreatePostRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    try:
        post = await service.create_post(db, user.id, body.content, body.category, body.tags, body.media_url)
    except ValidationFailedError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    await db.commit()
    return PostResponse.model_validate(post)
