"""Keyed query cache with per-query staleness and prefix invalidation.

Keys are tuples such as ``("userStats", user_id)``. ``invalidate(prefix)``
marks every key that starts with ``prefix`` stale, so the next ``fetch``
for it calls the backend again. Fetches are not versioned: when two
fetches for one key overlap, whichever finishes last wins.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable, Hashable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from idolyst.client.api import ApiError

logger = structlog.get_logger()

T = TypeVar("T")
QueryKey = tuple[Hashable, ...]

MINUTE = 60.0


@dataclass
class QueryResult(Generic[T]):
    key: QueryKey
    data: T | None = None
    error: ApiError | None = None
    enabled: bool = True
    is_loading: bool = False

    @property
    def is_error(self) -> bool:
        return self.error is not None


@dataclass
class _Entry:
    data: Any
    updated_at: float
    stale: bool = False


class QueryClient:
    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[QueryKey, _Entry] = {}
        self._errors: dict[QueryKey, ApiError] = {}
        self._in_flight: set[QueryKey] = set()

    def keys(self) -> list[QueryKey]:
        return list(self._entries)

    def get_query_data(self, key: QueryKey) -> Any:  # noqa: ANN401
        entry = self._entries.get(key)
        return entry.data if entry else None

    def set_query_data(self, key: QueryKey, data: Any) -> None:  # noqa: ANN401
        self._entries[key] = _Entry(data=data, updated_at=self._clock())
        self._errors.pop(key, None)

    def is_fetching(self, key: QueryKey) -> bool:
        return key in self._in_flight

    def is_stale(self, key: QueryKey, stale_time: float) -> bool:
        entry = self._entries.get(key)
        if entry is None or entry.stale:
            return True
        return self._clock() - entry.updated_at >= stale_time

    async def fetch(
        self,
        key: QueryKey,
        fn: Callable[[], Awaitable[T]],
        *,
        stale_time: float = 0.0,
        enabled: bool = True,
        force: bool = False,
    ) -> QueryResult[T]:
        """Return cached data while fresh, otherwise call ``fn`` and cache its result.

        ``force`` refetches regardless of freshness. A disabled query makes no
        call and returns no data. A failed call keeps whatever was cached
        before and reports the error. Cached data served while another fetch
        for the key is outstanding comes back with ``is_loading`` set.
        """
        if not enabled:
            return QueryResult(key=key, enabled=False)
        if not force and not self.is_stale(key, stale_time):
            return QueryResult(key=key, data=self._entries[key].data, is_loading=self.is_fetching(key))

        self._in_flight.add(key)
        try:
            data = await fn()
        except ApiError as e:
            logger.warning("query_failed", key=key, status=e.status, detail=e.detail)
            self._errors[key] = e
            return QueryResult(key=key, data=self.get_query_data(key), error=e)
        finally:
            self._in_flight.discard(key)

        self.set_query_data(key, data)
        return QueryResult(key=key, data=data)

    def invalidate(self, prefix: QueryKey) -> int:
        """Mark every key starting with ``prefix`` stale. Returns how many matched."""
        matched = 0
        for key, entry in self._entries.items():
            if key[: len(prefix)] == prefix:
                entry.stale = True
                matched += 1
        return matched

    def remove(self, prefix: QueryKey) -> None:
        for key in [k for k in self._entries if k[: len(prefix)] == prefix]:
            del self._entries[key]

    def clear(self) -> None:
        self._entries.clear()
        self._errors.clear()
