"""FastAPI application factory."""

import asyncio
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager, suppress

import structlog
from fastapi import FastAPI

from idolyst.ascend.router import router as ascend_router
from idolyst.ascend.seed import seed_catalogue, validate_catalogue
from idolyst.config import get_settings
from idolyst.database import close_db, get_session, init_db
from idolyst.health.router import router as health_router
from idolyst.launchpad.router import router as launchpad_router
from idolyst.mentorship.router import router as mentorship_router
from idolyst.messages.router import router as messages_router
from idolyst.middleware import setup_middleware
from idolyst.notifications.router import router as notifications_router
from idolyst.profiles.router import router as profiles_router
from idolyst.redis_client import close_redis, get_redis, init_redis
from idolyst.storage.service import provision_bucket
from idolyst.ws.bridge import PubSubBridge
from idolyst.ws.router import router as ws_router

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup and shutdown lifecycle."""
    settings = get_settings()
    # Fails fast on a catalogue icon that the client cannot render
    validate_catalogue()

    await init_db(settings.database_url)
    await init_redis(settings.redis_url)

    try:
        async for db in get_session():
            await seed_catalogue(db)
            break
    except Exception:
        logger.warning("catalogue_seed_failed", exc_info=True)

    try:
        await provision_bucket()
    except Exception:
        logger.warning("storage_provision_failed", bucket=settings.storage_bucket, exc_info=True)

    bridge = PubSubBridge(get_redis())
    bridge_task = asyncio.create_task(bridge.start())

    yield

    await bridge.stop()
    bridge_task.cancel()
    with suppress(asyncio.CancelledError):
        await bridge_task

    await close_db()
    await close_redis()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Idolyst API",
        description="Backend API for Idolyst: Ascend progression, notifications, messaging and settings sync",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(ascend_router)
    app.include_router(notifications_router)
    app.include_router(profiles_router)
    app.include_router(messages_router)
    app.include_router(mentorship_router)
    app.include_router(launchpad_router)
    app.include_router(ws_router)

    return app


app = create_app()
