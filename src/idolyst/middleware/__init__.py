"""Middleware registration."""

from fastapi import FastAPI

from idolyst.config import Settings
from idolyst.middleware.cors import setup_cors
from idolyst.middleware.error_handler import setup_error_handlers
from idolyst.middleware.logging import setup_logging
from idolyst.middleware.rate_limit import RateLimitMiddleware
from idolyst.middleware.request_id import RequestIdMiddleware


def setup_middleware(app: FastAPI, settings: Settings) -> None:
    """Register logging, error handlers and the middleware stack.

    Starlette runs middleware outermost-last, so CORS is added last to
    decorate 429 responses from the rate limiter as well.
    """
    setup_logging(settings)
    setup_error_handlers(app)
    app.add_middleware(
        RateLimitMiddleware,
        limit=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    app.add_middleware(RequestIdMiddleware)
    setup_cors(app, settings)
