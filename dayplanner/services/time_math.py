"""Parsing and formatting of human time strings plus duration arithmetic."""
from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

TIME_FORMATS = ("%I:%M %p", "%I:%M%p", "%H:%M", "%H:%M:%S")
LONG_DATE_FORMAT = "%B %d, %Y"
MINUTES_PER_DAY = 24 * 60


def parse_time_string(value: Optional[str]) -> Optional[time]:
    """Parse "9:00 AM", "09:00 am", "14:30" or an ISO-8601 datetime into a time of day."""
    if not value or not isinstance(value, str):
        return None
    text = value.strip()
    for fmt in TIME_FORMATS:
        try:
            return datetime.strptime(text.upper(), fmt).time()
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed.time().replace(tzinfo=None)


def format_time(value: Union[time, datetime]) -> str:
    """Render a 12-hour clock string without a leading zero ("9:05 AM")."""
    return value.strftime("%I:%M %p").lstrip("0")


def normalize_time_string(value: str) -> str:
    """Reformat a parseable time string; leave anything else untouched."""
    parsed = parse_time_string(value)
    return format_time(parsed) if parsed else value


def calculate_duration(start: Optional[str], end: Optional[str]) -> int:
    """Minutes from ``start`` to ``end``; 0 when either side does not parse.

    An end earlier than the start is read as crossing midnight.
    """
    start_time = parse_time_string(start)
    end_time = parse_time_string(end)
    if start_time is None or end_time is None:
        return 0
    minutes = _minutes_of_day(end_time) - _minutes_of_day(start_time)
    if minutes < 0:
        minutes += MINUTES_PER_DAY
    return minutes


def add_minutes(value: time, minutes: int) -> time:
    total = (_minutes_of_day(value) + minutes) % MINUTES_PER_DAY
    return time(hour=total // 60, minute=total % 60)


def combine(day: date, value: time) -> datetime:
    return datetime.combine(day, value.replace(tzinfo=None))


def reanchor(value: Optional[Union[datetime, time]], day: date) -> Optional[datetime]:
    """Move a time (or the clock part of a datetime) onto ``day``."""
    if value is None:
        return None
    clock = value.time() if isinstance(value, datetime) else value
    return combine(day, clock.replace(second=0, microsecond=0))


def minutes_between(start: datetime, end: datetime) -> int:
    return int((end - start).total_seconds() // 60)


def long_date_string(day: date) -> str:
    """Long-form date used to name per-day task groups ("October 18, 2026")."""
    return f"{day:%B} {day.day}, {day.year}"


def parse_long_date(value: str) -> Optional[date]:
    try:
        return datetime.strptime(value.strip(), LONG_DATE_FORMAT).date()
    except ValueError:
        return None


def medium_date_string(day: date) -> str:
    return f"{day:%b} {day.day}, {day.year}"


def format_instant(value: datetime) -> str:
    """Human-readable instant used inside planning requests."""
    return f"{medium_date_string(value.date())} {format_time(value)}"


def shift(value: datetime, minutes: int) -> datetime:
    return value + timedelta(minutes=minutes)


def _minutes_of_day(value: time) -> int:
    return value.hour * 60 + value.minute
