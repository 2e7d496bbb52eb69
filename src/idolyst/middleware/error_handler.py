"""Global exception handlers. Every error body is JSON with a ``detail`` key."""

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from idolyst.errors import (
    IdolystError,
    InsufficientXpError,
    NotFoundError,
    StorageError,
    ValidationFailedError,
)

logger = structlog.get_logger()

_DOMAIN_STATUS: list[tuple[type[IdolystError], int]] = [
    (NotFoundError, 404),
    (InsufficientXpError, 409),
    (ValidationFailedError, 422),
    (StorageError, 400),
]


def domain_status(exc: IdolystError) -> int:
    for error_type, status in _DOMAIN_STATUS:
        if isinstance(exc, error_type):
            return status
    return 400


def flatten_validation_errors(errors: list[dict[str, Any]]) -> dict[str, str]:
    """``{field: first message}`` from pydantic error dicts, dropping the location prefix."""
    flat: dict[str, str] = {}
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "__root__"
        message = str(error.get("msg", "Invalid value")).removeprefix("Value error, ")
        flat.setdefault(field, message)
    return flat


def setup_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(_request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        """422 with per-field messages for inline form display."""
        return JSONResponse(
            status_code=422,
            content={"detail": "Validation error", "errors": flatten_validation_errors(exc.errors())},
        )

    @app.exception_handler(IdolystError)
    async def domain_exception_handler(request: Request, exc: IdolystError) -> JSONResponse:
        status = domain_status(exc)
        logger.info("domain_error", path=request.url.path, error=type(exc).__name__, status=status)
        return JSONResponse(status_code=status, content={"detail": str(exc)})

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "unhandled_exception",
            path=request.url.path,
            method=request.method,
            error=str(exc),
            exc_info=exc,
        )
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})
