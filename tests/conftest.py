"""Shared test fixtures.

API tests run the real app with the database session, Redis and current
user replaced through ``app.dependency_overrides``; no Postgres or Redis
is needed.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, MagicMock

os.environ.setdefault("IDOLYST_JWT_SECRET", "test-secret-for-idolyst-unit-tests-0123456789")
os.environ.setdefault("IDOLYST_LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from idolyst.auth.dependencies import get_current_user
from idolyst.config import get_settings
from idolyst.database import get_session
from idolyst.db.models import Profile
from idolyst.dependencies import get_redis_dep
from idolyst.main import create_app
from idolyst.realtime.feed import ChangeFeed

get_settings.cache_clear()

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"


def make_profile(user_id: str = USER_ID, *, xp: int = 0, username: str | None = "alice") -> Profile:
    return Profile(
        id=user_id,
        username=username,
        full_name="Alice Founder",
        bio=None,
        avatar_url=None,
        xp=xp,
        level=1,
        roles=["entrepreneur"],
    )


class RecordingFeed(ChangeFeed):
    """Feed with an in-memory transport that records channel opens and closes."""

    def __init__(self) -> None:
        super().__init__()
        self.opened: list[str] = []
        self.closed: list[str] = []

    async def _open_channel(self, channel: str) -> None:
        self.opened.append(channel)

    async def _close_channel(self, channel: str) -> None:
        self.closed.append(channel)


def make_db() -> MagicMock:
    """AsyncSession stand-in; ``add`` is sync, everything else awaitable."""
    db = MagicMock()
    db.execute = AsyncMock(return_value=MagicMock())
    db.get = AsyncMock(return_value=None)
    db.flush = AsyncMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    db.add = MagicMock()
    return db


def scalar_result(value: object) -> MagicMock:
    """Mock of ``Result`` answering ``scalar_one_or_none``/``scalar_one``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    return result


@pytest.fixture
def profile() -> Profile:
    return make_profile(xp=300)


@pytest.fixture
def db() -> MagicMock:
    return make_db()


@pytest.fixture
def app(profile: Profile, db: MagicMock) -> FastAPI:
    """The app with the session, Redis and current user overridden."""
    app = create_app()

    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield db

    async def _redis() -> AsyncGenerator[None, None]:
        yield None

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[get_redis_dep] = _redis
    app.dependency_overrides[get_current_user] = lambda: profile
    return app


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Authenticated client against ``app``."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def anon_client(db: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """Client with no current-user override, so real token checks apply."""
    app = create_app()

    async def _session() -> AsyncGenerator[MagicMock, None]:
        yield db

    app.dependency_overrides[get_session] = _session
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
