"""
Interval planner: turns preferred times and a frequency tier into the
ordered list of daily trigger times.

Explicit user times always come first. Missing slots are synthesized by
offsetting the preferred times (used cyclically as anchors) by
floor(12 / missing) * k hours, wrapping at 24h. The offset is a heuristic
that spreads the remaining slots over roughly half a day; it is not
uniform when the number of missing slots does not divide 12, and it can
produce a time equal to an existing one.
"""

from __future__ import annotations

from collections.abc import Sequence

from .time_windows import format_hhmm, parse_hhmm

TIMES_PER_DAY = {
    "low": 2,
    "medium": 4,
    "high": 6,
}
DEFAULT_TIMES_PER_DAY = 3
DEFAULT_ANCHOR_TIME = "09:00"


def times_per_day(frequency: str) -> int:
    """Daily trigger count for a frequency tier (3 for unknown tiers)."""
    return TIMES_PER_DAY.get(frequency, DEFAULT_TIMES_PER_DAY)


def plan_times(
    preferred_times: Sequence[str],
    desired_count: int,
    default_anchor: str = DEFAULT_ANCHOR_TIME,
) -> list[str]:
    """
    Compute exactly ``desired_count`` daily trigger times.

    Args:
        preferred_times: User-supplied "HH:MM" times, in priority order
        desired_count: Number of daily triggers wanted
        default_anchor: Anchor used when no preferred time is given

    Returns:
        Ordered "HH:MM" list; preferred times first, unmodified

    Raises:
        InvalidScheduleError: If any time is malformed
    """
    if desired_count <= 0:
        return []

    anchors = list(preferred_times) or [default_anchor]
    parsed = [parse_hhmm(t) for t in anchors]

    if len(anchors) >= desired_count:
        return anchors[:desired_count]

    intervals = list(anchors)
    missing = desired_count - len(anchors)
    hours_to_add = 12 // missing

    for i in range(len(anchors), desired_count):
        hour, minute = parsed[i % len(anchors)]
        k = i - len(anchors) + 1
        intervals.append(format_hhmm((hour + hours_to_add * k) % 24, minute))

    return intervals
