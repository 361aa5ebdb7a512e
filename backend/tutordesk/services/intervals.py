from __future__ import annotations

import re

from tutordesk.core.exceptions import InvalidIntervalError
from tutordesk.schemas.scheduling import MINUTES_PER_DAY, Interval

TIME_PATTERN = re.compile(r"^([01]?\d|2[0-4]):([0-5]\d)(?::([0-5]\d))?$")


def parse_hhmm(value: str) -> int:
    """Parse ``H:MM``, ``HH:MM`` or ``HH:MM:SS`` into minutes since midnight.

    Seconds are dropped. ``24:00`` is accepted as the end of the day.
    """
    match = TIME_PATTERN.match(str(value or "").strip())
    if not match:
        raise InvalidIntervalError(f"Time must be in HH:MM 24-hour format, got {value!r}")
    minutes = int(match.group(1)) * 60 + int(match.group(2))
    if minutes > MINUTES_PER_DAY:
        raise InvalidIntervalError(f"Time {value!r} is past the end of the day")
    return minutes


def format_minutes(minutes: int) -> str:
    hours, rest = divmod(int(minutes), 60)
    return f"{hours:02d}:{rest:02d}"


def _to_minutes(value: int | str) -> int:
    if isinstance(value, bool):
        raise InvalidIntervalError(f"Invalid time value {value!r}")
    if isinstance(value, int):
        return value
    return parse_hhmm(value)


def make_interval(start: int | str, end: int | str) -> Interval:
    return Interval(start=_to_minutes(start), end=_to_minutes(end))


def ensure_valid_interval(interval: Interval) -> Interval:
    # model_construct() skips validation, so check again at the service boundary.
    if interval.start >= interval.end:
        raise InvalidIntervalError(
            f"Interval start {interval.start} must be before end {interval.end}",
            start=interval.start,
            end=interval.end,
        )
    return interval


def intervals_overlap(a: Interval, b: Interval) -> bool:
    # Half-open ranges: touching endpoints do not overlap.
    return not (a.end <= b.start or a.start >= b.end)
