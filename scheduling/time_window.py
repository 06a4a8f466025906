"""
Daily time windows that may wrap past midnight.

A window is given as "HH:MM" start and end strings and evaluated against
minutes-since-midnight (0-1439):

    start <  end  ->  [start, end) on the same day
    start >  end  ->  wraps midnight: active if now >= start or now < end
    start == end  ->  empty window, never active
"""

from dataclasses import dataclass
from datetime import datetime, time
from typing import Union

MINUTES_PER_DAY = 24 * 60

TimeOfDay = Union[datetime, time]


def parse_hhmm(value: str) -> int:
    """
    Parse an "HH:MM" string into minutes since midnight.

    Raises:
        ValueError: If the string is not a valid 24-hour time.
    """
    try:
        hours_str, minutes_str = value.strip().split(":", 1)
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid time (expected HH:MM): {value!r}")

    if not (0 <= hours < 24 and 0 <= minutes < 60):
        raise ValueError(f"Time out of range: {value!r}")
    return hours * 60 + minutes


def minutes_of_day(now: TimeOfDay) -> int:
    """Minutes since midnight for a datetime or time value."""
    return now.hour * 60 + now.minute


@dataclass(frozen=True)
class TimeWindow:
    """A daily window between two HH:MM clock times."""

    start: str
    end: str

    def __post_init__(self):
        # Fail fast on malformed bounds
        parse_hhmm(self.start)
        parse_hhmm(self.end)

    @property
    def start_minutes(self) -> int:
        return parse_hhmm(self.start)

    @property
    def end_minutes(self) -> int:
        return parse_hhmm(self.end)

    @property
    def wraps_midnight(self) -> bool:
        return self.start_minutes > self.end_minutes

    def contains(self, now: TimeOfDay) -> bool:
        return in_window(self, now)

    def minutes_until_next_boundary(self, now: TimeOfDay) -> int:
        return minutes_until_next_boundary(self, now)


def in_window(window: TimeWindow, now: TimeOfDay) -> bool:
    """
    Check whether a clock time falls inside the window.

    Args:
        window: Window with HH:MM start and end
        now: Current time of day (seconds are ignored)

    Returns:
        True if now is in the window. Always False when start == end.
    """
    start = window.start_minutes
    end = window.end_minutes
    current = minutes_of_day(now)

    if start > end:
        return current >= start or current < end
    return start <= current < end


def minutes_until_next_boundary(window: TimeWindow, now: TimeOfDay) -> int:
    """
    Minutes until the window next changes state.

    While inside the window this counts down to the end boundary, otherwise
    to the start boundary, wrapping through midnight when needed.

    Returns:
        Minutes in the range 1..1440. An empty window reports the time to
        its (never-opening) start, a full day if that is right now.
    """
    current = minutes_of_day(now)
    target = window.end_minutes if in_window(window, now) else window.start_minutes
    delta = (target - current) % MINUTES_PER_DAY
    return delta if delta > 0 else MINUTES_PER_DAY
