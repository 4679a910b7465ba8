"""
Clock and time-window helpers.

Wall-clock times are "HH:MM" strings. Quiet hours compare zero-padded strings
on a same-day basis, inclusive at both ends, so 22:00-08:00 wraps midnight.
"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from .exceptions import InvalidScheduleError

Clock = Callable[[], datetime]

_HHMM = re.compile(r"^(\d{1,2}):(\d{2})$")

# (first hour, bucket name); each bucket runs until the next one starts
TIME_OF_DAY_BUCKETS = (
    (0, "night"),
    (6, "morning"),
    (12, "afternoon"),
    (18, "evening"),
)


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_hhmm(value: str) -> tuple[int, int]:
    """
    Parse an "HH:MM" string.

    Raises:
        InvalidScheduleError: If the value is not a valid 24h wall-clock time
    """
    match = _HHMM.match(value.strip()) if isinstance(value, str) else None
    if not match:
        raise InvalidScheduleError(f"Invalid time {value!r}, expected HH:MM")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise InvalidScheduleError(f"Invalid time {value!r}, expected HH:MM")
    return hour, minute


def format_hhmm(hour: int, minute: int) -> str:
    return f"{hour:02d}:{minute:02d}"


def to_hhmm(value: str | time | datetime) -> str:
    """Normalize a string, time or datetime to a zero-padded "HH:MM"."""
    if isinstance(value, (datetime, time)):
        return format_hhmm(value.hour, value.minute)
    return format_hhmm(*parse_hhmm(value))


def is_quiet_hour(
    now: str | time | datetime,
    quiet_start: str,
    quiet_end: str,
) -> bool:
    """
    Check whether ``now`` falls inside the quiet window.

    Args:
        now: Current wall-clock time ("HH:MM", time or datetime)
        quiet_start: Window start, inclusive
        quiet_end: Window end, inclusive

    Returns:
        True when prompts must not be sent
    """
    current = to_hhmm(now)
    start = to_hhmm(quiet_start)
    end = to_hhmm(quiet_end)

    if start < end:
        return start <= current <= end
    # Window wraps midnight (e.g. 22:00 - 08:00)
    return current >= start or current <= end


def time_of_day_bucket(now: str | time | datetime) -> str:
    """Return "night", "morning", "afternoon" or "evening"."""
    hour, _ = parse_hhmm(to_hhmm(now))
    name = TIME_OF_DAY_BUCKETS[0][1]
    for first_hour, bucket in TIME_OF_DAY_BUCKETS:
        if hour >= first_hour:
            name = bucket
    return name


def local_now(tz: ZoneInfo, clock: Clock = utc_now) -> datetime:
    """Read the clock and express it in ``tz``."""
    return clock().astimezone(tz)


def start_of_local_day(tz: ZoneInfo, now: datetime) -> datetime:
    """Midnight of the calendar day ``now`` falls on in ``tz``."""
    local = now.astimezone(tz)
    return datetime.combine(local.date(), time(0, 0), tzinfo=tz)


def next_occurrence(hhmm: str, tz: ZoneInfo, after: datetime) -> datetime:
    """
    Next instant strictly after ``after`` at which the wall clock in ``tz``
    reads ``hhmm``.

    A time skipped by a DST jump resolves to the instant zoneinfo maps it to
    (one hour later on the wall clock).
    """
    hour, minute = parse_hhmm(hhmm)
    local = after.astimezone(tz)
    candidate = datetime.combine(local.date(), time(hour, minute), tzinfo=tz)
    # Compare instants, not wall times
    while candidate.timestamp() <= after.timestamp():
        candidate = datetime.combine(
            candidate.date() + timedelta(days=1), time(hour, minute), tzinfo=tz
        )
    return candidate


def seconds_until(target: datetime, now: datetime) -> float:
    return max(0.0, target.timestamp() - now.timestamp())
