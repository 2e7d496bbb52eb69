"""User-visible notices (toasts)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Protocol

import structlog

logger = structlog.get_logger()

Variant = Literal["default", "destructive"]


@dataclass(frozen=True)
class Notice:
    title: str
    description: str
    variant: Variant = "default"


class Notifier(Protocol):
    def notify(self, notice: Notice) -> None: ...


class LogNotifier:
    """Writes notices to the log; for headless use."""

    def notify(self, notice: Notice) -> None:
        log = logger.warning if notice.variant == "destructive" else logger.info
        log("notice", title=notice.title, description=notice.description)


class RecordingNotifier:
    """Keeps every notice in order."""

    def __init__(self) -> None:
        self.notices: list[Notice] = []

    def notify(self, notice: Notice) -> None:
        self.notices.append(notice)


def error_notice(title: str, description: str = "Something went wrong. Please try again.") -> Notice:
    return Notice(title=title, description=description, variant="destructive")
