"""Display formatting helpers shared by API responses and client view models."""

from __future__ import annotations

import re
from datetime import date, datetime
from urllib.parse import urlsplit

_SCHEME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*$")

_UNITS = (
    (1_000_000_000, "B"),
    (1_000_000, "M"),
    (1_000, "K"),
)


def format_compact_number(num: float) -> str:
    """1234 -> '1.2K', 3_000_000 -> '3M'. Values under 1000 are printed as-is."""
    if num < 1000:
        return str(int(num)) if float(num).is_integer() else str(num)
    for size, suffix in _UNITS:
        if num >= size:
            text = f"{num / size:.1f}"
            if text.endswith(".0"):
                text = text[:-2]
            return text + suffix
    return str(num)  # unreachable


def is_valid_url(value: str) -> bool:
    """True for absolute URLs with a scheme (``https://x.io``, ``mailto:a@b.c``)."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    if not parts.scheme or not _SCHEME_RE.match(parts.scheme):
        return False
    return bool(parts.netloc or parts.path)


def truncate_string(value: str, length: int) -> str:
    """Cut ``value`` to ``length`` characters and append an ellipsis when cut."""
    if len(value) <= length:
        return value
    return value[:length] + "..."


def get_initials(name: str) -> str:
    return "".join(part[0] for part in name.split(" ") if part).upper()


def format_relative_date(value: datetime | date, today: date | None = None) -> str:
    """'Today', 'Yesterday' or M/D/YYYY."""
    day = value.date() if isinstance(value, datetime) else value
    today = today or date.today()
    delta = (today - day).days
    if delta == 0:
        return "Today"
    if delta == 1:
        return "Yesterday"
    return f"{day.month}/{day.day}/{day.year}"
