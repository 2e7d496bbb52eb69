"""Level thresholds and progress computation.

The table is cumulative XP per level, starting at level 1. It must match the
web client's Ascend progress bar exactly.
"""

from __future__ import annotations

from collections.abc import Sequence

XP_PER_LEVEL: list[int] = [0, 100, 250, 500, 1000, 2000, 3500, 5500, 8000, 11000]

# Ratio used to synthesise a next threshold once the table is exhausted.
EXTRAPOLATION_FACTOR = 1.5


def level_for_xp(xp: int, table: Sequence[int] = XP_PER_LEVEL) -> int:
    """Highest level whose threshold is <= xp. Never exceeds the table length."""
    level = 1
    for index, threshold in enumerate(table):
        if xp >= threshold:
            level = index + 1
        else:
            break
    return level


def compute_progress(level: int, xp: int, table: Sequence[int] = XP_PER_LEVEL) -> dict:
    """Progress of ``xp`` through ``level``.

    ``level`` is trusted as given (>= 1). Past the end of the table the current
    threshold becomes 0 and the next threshold is extrapolated, so the result
    is an approximation for very high levels.
    """
    current_level_xp = table[level - 1] if 0 < level <= len(table) else 0
    if level < len(table):
        next_level_xp = table[level]
    else:
        next_level_xp = current_level_xp * EXTRAPOLATION_FACTOR

    span = next_level_xp - current_level_xp
    if span <= 0:
        percentage = 100.0
    else:
        percentage = (xp - current_level_xp) / span * 100
    percentage = max(0.0, min(100.0, percentage))

    return {
        "level": level,
        "current_level_xp": current_level_xp,
        "next_level_xp": int(next_level_xp) if float(next_level_xp).is_integer() else next_level_xp,
        "xp_into_level": xp - current_level_xp,
        "xp_for_level": span,
        "xp_to_next_level": max(0, next_level_xp - xp),
        "progress_percentage": percentage,
    }


def level_table(table: Sequence[int] = XP_PER_LEVEL) -> list[dict]:
    """Thresholds as a list of dicts for the /levels endpoint."""
    return [{"level": i + 1, "xp_required": threshold} for i, threshold in enumerate(table)]
