"""Launchpad posts and trending topics."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any, Literal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.db.models import Post
from idolyst.errors import ValidationFailedError

logger = logging.getLogger(__name__)

RECENT_POST_WINDOW = 100
FEATURED_THRESHOLD = 5
MAX_POST_LENGTH = 3000
MAX_TAGS = 10


def count_trending_tags(posts: Iterable[Any], limit: int = 10) -> list[dict[str, Any]]:
    """Tag frequencies across ``posts``, most used first.

    Each post needs ``tags`` and ``category`` (attribute or mapping key). A
    tag keeps the category of the first post it was seen on and is featured
    once it appears on more than five posts.
    """
    counts: dict[str, int] = {}
    categories: dict[str, str] = {}
    for post in posts:
        if isinstance(post, dict):
            tags, category = post.get("tags"), post.get("category")
        else:
            tags, category = getattr(post, "tags", None), getattr(post, "category", None)
        for tag in tags or ():
            counts[tag] = counts.get(tag, 0) + 1
            categories.setdefault(tag, category or "general")

    # sorted() is stable, so ties keep first-seen order.
    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)[:limit]
    return [
        {
            "tag": tag,
            "count": count,
            "category": categories[tag],
            "is_featured": count > FEATURED_THRESHOLD,
        }
        for tag, count in ranked
    ]


async def get_trending_topics(db: AsyncSession, limit: int = 10) -> list[dict[str, Any]]:
    """Trending tags over the most recent tagged posts."""
    result = await db.execute(
        select(Post.tags, Post.category)
        .where(Post.tags.is_not(None))
        .order_by(Post.created_at.desc())
        .limit(RECENT_POST_WINDOW)
    )
    rows = [{"tags": tags, "category": category} for tags, category in result.all()]
    return count_trending_tags(rows, limit)


async def list_posts(
    db: AsyncSession,
    category: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort: Literal["newest", "oldest"] = "newest",
) -> list[Post]:
    """One page of the post feed. ``category`` of None or ``All`` means every category."""
    stmt = select(Post)
    if category and category != "All":
        stmt = stmt.where(Post.category == category)
    order = Post.created_at.asc() if sort == "oldest" else Post.created_at.desc()
    result = await db.execute(stmt.order_by(order).limit(limit).offset((page - 1) * limit))
    return list(result.scalars().all())


async def create_post(
    db: AsyncSession,
    author_id: str,
    content: str,
    category: str = "general",
    tags: list[str] | None = None,
    media_url: str | None = None,
) -> Post:
    content = content.strip()
    if not content:
        msg = "Post cannot be empty"
        raise ValidationFailedError(msg, field="content")
    if len(content) > MAX_POST_LENGTH:
        msg = f"Post must be less than {MAX_POST_LENGTH} characters"
        raise ValidationFailedError(msg, field="content")
    cleaned = list(dict.fromkeys(t.strip().lstrip("#") for t in tags or () if t.strip().lstrip("#")))
    if len(cleaned) > MAX_TAGS:
        msg = f"A post can have at most {MAX_TAGS} tags"
        raise ValidationFailedError(msg, field="tags")

    post = Post(
        author_id=author_id,
        content=content,
        category=category.strip() or "general",
        tags=cleaned or None,
        media_url=media_url,
        created_at=datetime.now(timezone.utc),
    )
    db.add(post)
    await db.flush()
    logger.info("Post created by %s in %s", author_id, post.category)
    return post
