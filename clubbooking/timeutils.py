"""Clock-time helpers shared by the availability and booking services.

Slots are half-open ``[start, end)`` intervals in minutes since midnight.
``24:00`` (1440) is accepted as an end-of-day closing time.
"""

import re
from datetime import date, datetime, timezone

MINUTES_PER_DAY = 1440

_TIME_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class TimeParseError(ValueError):
    """Raised when a clock-time string is not a valid ``HH:MM`` value."""


def time_to_minutes(value: str) -> int:
    """Convert an ``HH:MM`` string to minutes since midnight.

    Parsing is strict: a missing component, non-digit characters or an
    out-of-range hour/minute raise ``TimeParseError``.

    Examples:
        >>> time_to_minutes("09:30")
        570
        >>> time_to_minutes("24:00")
        1440
    """
    match = _TIME_PATTERN.match(value.strip()) if isinstance(value, str) else None
    if match is None:
        raise TimeParseError(f"Invalid time {value!r}: expected HH:MM")
    hours, minutes = int(match.group(1)), int(match.group(2))
    if minutes > 59 or hours > 24 or (hours == 24 and minutes != 0):
        raise TimeParseError(f"Invalid time {value!r}: out of range")
    return hours * 60 + minutes


def minutes_to_time(minutes: int) -> str:
    """Convert minutes since midnight to a zero-padded ``HH:MM`` string.

    Values outside ``0..1440`` are rejected rather than wrapped.
    """
    if not 0 <= minutes <= MINUTES_PER_DAY:
        raise ValueError(f"Minutes out of range 0..{MINUTES_PER_DAY}: {minutes}")
    hours, mins = divmod(minutes, 60)
    return f"{hours:02d}:{mins:02d}"


def format_time_12h(value: str) -> str:
    """Format an ``HH:MM`` string for display, e.g. ``"14:05"`` -> ``"2:05 PM"``."""
    total = time_to_minutes(value) % MINUTES_PER_DAY
    hours, minutes = divmod(total, 60)
    period = "PM" if hours >= 12 else "AM"
    hour12 = hours % 12 or 12
    return f"{hour12}:{minutes:02d} {period}"


def ranges_overlap(a, b) -> bool:
    """True iff half-open slots ``a`` and ``b`` share at least one minute.

    Touching endpoints (``a.end == b.start``) do not overlap.
    """
    return a.start < b.end and b.start < a.end


def slot_contains(outer, inner) -> bool:
    """True iff ``inner`` lies entirely within ``outer``."""
    return outer.start <= inner.start and inner.end <= outer.end


def day_of_week(value: date) -> int:
    """Day index with Sunday as 0 and Saturday as 6."""
    return (value.weekday() + 1) % 7


def as_utc(value: datetime) -> datetime:
    """Aware UTC instant for ``value``; a naive value is read as UTC.

    Promotion windows may be aware (``...Z`` in JSON) or naive.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def as_wall_time(value: datetime) -> datetime:
    """Naive wall-clock reading of ``value``, comparable with booking start times."""
    return value.replace(tzinfo=None)
