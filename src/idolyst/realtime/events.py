"""Row-level change events.

Writes to watched tables publish a ``ChangeEvent`` on
``realtime:{table}:{user_id}`` for every user allowed to see the row.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, Field
from sqlalchemy import inspect

ChangeKind = Literal["INSERT", "UPDATE", "DELETE"]

WATCHED_TABLES = frozenset({"privacy_settings", "notification_preferences", "messages"})

CHANNEL_PREFIX = "realtime"


class ChangeEvent(BaseModel):
    event: ChangeKind
    table: str
    new: dict[str, Any] = Field(default_factory=dict)
    old: dict[str, Any] = Field(default_factory=dict)
    commit_timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


def channel_for(table: str, user_id: str) -> str:
    return f"{CHANNEL_PREFIX}:{table}:{user_id}"


def parse_channel(channel: str) -> tuple[str, str] | None:
    """Split ``realtime:{table}:{user_id}`` into ``(table, user_id)``."""
    parts = channel.split(":")
    if len(parts) != 3 or parts[0] != CHANNEL_PREFIX:
        return None
    return parts[1], parts[2]


def _jsonable(value: Any) -> Any:  # noqa: ANN401
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def row_snapshot(obj: object) -> dict[str, Any]:
    """Column values of an ORM instance as a JSON-safe dict."""
    mapper = inspect(obj).mapper
    return {attr.key: _jsonable(getattr(obj, attr.key)) for attr in mapper.column_attrs}
