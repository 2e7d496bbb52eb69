"""Shared FastAPI dependencies."""

from collections.abc import AsyncGenerator

from fastapi import Depends

from idolyst.realtime.publisher import DeferredPublisher
from idolyst.redis_client import get_redis as _get_redis


async def get_redis_dep() -> AsyncGenerator[object | None, None]:
    """Yield the Redis client, or None when Redis is not initialized.

    Publishing is best-effort everywhere it is used, so a missing Redis
    degrades real-time delivery instead of failing the request.
    """
    try:
        client = _get_redis()
    except RuntimeError:
        client = None
    yield client


async def get_publisher(
    redis: object | None = Depends(get_redis_dep),
) -> AsyncGenerator[DeferredPublisher, None]:
    """Yield a publisher whose messages go out only when the route calls ``flush``.

    Routes flush after ``db.commit()``; messages left over when the request ends
    (a failed commit or an error response) are dropped.
    """
    publisher = DeferredPublisher(redis)
    try:
        yield publisher
    finally:
        publisher.discard()
