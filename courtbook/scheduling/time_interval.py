"""
Clock-time helpers for half-open slot intervals.

Times are zero-padded ``HH:MM`` strings on a single day. Intervals are
half-open ``[start, end)``, so a booking ending at 10:00 never conflicts
with one starting at 10:00.
"""

import re
from typing import Union

from courtbook.errors import ParseError

MINUTES_PER_DAY = 24 * 60

_CLOCK_RE = re.compile(r"([0-9]{2}):([0-9]{2})")

ClockTime = Union[str, int]


def to_minutes(time: str) -> int:
    """Convert ``HH:MM`` to minutes since midnight.

    Examples:
        >>> to_minutes("07:00")
        420
        >>> to_minutes("23:59")
        1439
    """
    if not isinstance(time, str):
        raise ParseError(f"Expected an HH:MM string, got {time!r}")
    match = _CLOCK_RE.fullmatch(time)
    if not match:
        raise ParseError(f"Malformed time {time!r}, expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if hours > 23:
        raise ParseError(f"Hour out of range in {time!r}")
    if minutes > 59:
        raise ParseError(f"Minute out of range in {time!r}")
    return hours * 60 + minutes


def format_minutes(minutes: int) -> str:
    """Format minutes since midnight as ``HH:MM``, wrapping past midnight."""
    minutes %= MINUTES_PER_DAY
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def _as_minutes(value: ClockTime) -> int:
    if isinstance(value, bool):
        raise ParseError(f"Expected HH:MM or minutes, got {value!r}")
    if isinstance(value, int):
        return value
    return to_minutes(value)


def overlaps(start_a: ClockTime, end_a: ClockTime, start_b: ClockTime, end_b: ClockTime) -> bool:
    """True when the half-open intervals [start_a, end_a) and [start_b, end_b) intersect.

    Accepts ``HH:MM`` strings or plain minute counts, which lets callers
    pass ends beyond 24:00 for slots that run past midnight.
    """
    return _as_minutes(start_a) < _as_minutes(end_b) and _as_minutes(end_a) > _as_minutes(start_b)


def duration_minutes(hours: float) -> int:
    return round(hours * 60)


def add_duration(start: str, hours: float) -> str:
    """Add a duration in hours to ``start``; wraps silently past midnight.

    Examples:
        >>> add_duration("18:00", 1.5)
        '19:30'
        >>> add_duration("23:30", 1.0)
        '00:30'
    """
    return format_minutes(to_minutes(start) + duration_minutes(hours))


def slot_label(start: str, end: str) -> str:
    """``start - end`` label stored on owner booking requests."""
    return f"{start} - {end}"
