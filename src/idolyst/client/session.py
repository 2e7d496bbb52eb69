"""Client-side session state and route gating."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Literal

LOGIN_PATH = "/auth/login"
UNAUTHORIZED_PATH = "/unauthorized"


@dataclass(frozen=True)
class Session:
    """What the auth provider currently knows about the user."""

    user_id: str | None = None
    is_loading: bool = False
    roles: tuple[str, ...] = ()
    access_token: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None and not self.is_loading

    def has_any_role(self, roles: Iterable[str]) -> bool:
        return any(role in self.roles for role in roles)


ANONYMOUS = Session()


@dataclass(frozen=True)
class RouteAccess:
    outcome: Literal["loading", "allow", "redirect"]
    location: str | None = None
    # Where to send the user after logging in
    return_to: str | None = None


def route_access(
    session: Session,
    required_roles: Iterable[str] | None = None,
    current_path: str | None = None,
) -> RouteAccess:
    """Decide what a protected route renders for ``session``."""
    if session.is_loading:
        return RouteAccess("loading")
    if not session.is_authenticated:
        return RouteAccess("redirect", LOGIN_PATH, return_to=current_path)
    roles = list(required_roles or ())
    if roles and not session.has_any_role(roles):
        return RouteAccess("redirect", UNAUTHORIZED_PATH)
    return RouteAccess("allow")
