"""FastAPI authentication dependencies."""

from __future__ import annotations

from collections.abc import Awaitable, Callable

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from idolyst.auth.jwt import verify_token
from idolyst.database import get_session
from idolyst.db.models import Profile

_bearer = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),
    db: AsyncSession = Depends(get_session),
) -> Profile:
    """
    Verify the bearer token and return the caller's profile.

    Raises 401 when the token is missing, invalid, or names an unknown profile.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    profile = await db.get(Profile, payload["sub"])
    if profile is None:
        raise HTTPException(status_code=401, detail="User not found")
    return profile


def require_roles(*roles: str) -> Callable[..., Awaitable[Profile]]:
    """Dependency factory: 403 unless the caller holds at least one of ``roles``."""

    async def _check(user: Profile = Depends(get_current_user)) -> Profile:
        if roles and not set(roles) & set(user.roles or []):
            raise HTTPException(status_code=403, detail="Insufficient role")
        return user

    return _check
