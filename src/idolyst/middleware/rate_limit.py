"""Fixed-window rate limiting backed by Redis counters."""

import time
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from idolyst.redis_client import get_redis

EXEMPT_PATHS = frozenset({"/health", "/ready", "/version"})


def rate_key(client: str, window_seconds: int, now: float | None = None) -> str:
    window = int(now if now is not None else time.time()) // window_seconds
    return f"ratelimit:{client}:{window}"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Allow ``limit`` requests per client per window; answer 429 beyond that.

    Requests pass unthrottled while Redis is not initialized.
    """

    def __init__(self, app: Any, limit: int = 100, window_seconds: int = 60) -> None:  # noqa: ANN401
        super().__init__(app)
        self.limit = limit
        self.window_seconds = window_seconds

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        try:
            redis = get_redis()
        except RuntimeError:
            return await call_next(request)

        client = request.client.host if request.client else "unknown"
        key = rate_key(client, self.window_seconds)
        pipe = redis.pipeline()
        pipe.incr(key)
        pipe.expire(key, self.window_seconds + 1)
        count, _ = await pipe.execute()

        limit_headers = {"X-RateLimit-Limit": str(self.limit)}
        if count > self.limit:
            return JSONResponse(
                status_code=429,
                content={"detail": "Rate limit exceeded. Try again later."},
                headers={
                    **limit_headers,
                    "X-RateLimit-Remaining": "0",
                    "Retry-After": str(self.window_seconds),
                },
            )

        response = await call_next(request)
        response.headers.update(limit_headers)
        response.headers["X-RateLimit-Remaining"] = str(max(0, self.limit - count))
        return response
