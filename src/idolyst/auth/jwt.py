"""
Access-token verification.

Sessions are issued by the hosted auth provider as HS256 JWTs signed with the
project secret. ``sub`` carries the user id, ``aud`` is ``authenticated`` and
``app_metadata.roles`` (or a top-level ``roles`` claim) carries the user roles.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from idolyst.config import get_settings


def create_access_token(user_id: str, roles: list[str] | None = None, *, expires_minutes: int | None = None) -> str:
    """
    Sign a token in the provider's format.

    Only used by tests and local tooling; production tokens come from the provider.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    payload: dict[str, Any] = {
        "sub": user_id,
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "app_metadata": {"roles": list(roles or [])},
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Verify and decode an access token.

    Raises:
        jwt.InvalidTokenError: If the token is invalid, expired, or has no subject.
    """
    settings = get_settings()
    try:
        payload: dict[str, Any] = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=[settings.jwt_algorithm],
            audience=settings.jwt_audience,
        )
    except jwt.ExpiredSignatureError:
        msg = "Token has expired"
        raise jwt.InvalidTokenError(msg) from None

    if not payload.get("sub"):
        msg = "Token has no subject"
        raise jwt.InvalidTokenError(msg)

    return payload


def token_roles(payload: dict[str, Any]) -> list[str]:
    """Roles claim from either ``app_metadata.roles`` or top-level ``roles``."""
    roles = (payload.get("app_metadata") or {}).get("roles")
    if roles is None:
        roles = payload.get("roles", [])
    return list(roles)
