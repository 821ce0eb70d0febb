"""
Pure helpers for booking slot arithmetic.

Dates are ISO `YYYY-MM-DD` strings and times are zero-padded `HH:MM`
strings, so lexicographic order equals chronological order. Intervals are
half-open: `[start, end)`.
"""

import calendar
import re
from datetime import date
from typing import Optional

from app.core.exceptions import ValidationError

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


def parse_date(value: str) -> date:
    if not isinstance(value, str) or not _DATE_RE.match(value):
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise ValidationError(f"Invalid date '{value}', expected YYYY-MM-DD")


def parse_time(value: str) -> int:
    """Return minutes since midnight for an `HH:MM` string."""
    if not isinstance(value, str) or not _TIME_RE.match(value):
        raise ValidationError(f"Invalid time '{value}', expected HH:MM")
    hours, minutes = value.split(":")
    return int(hours) * 60 + int(minutes)


def duration_minutes(start_time: str, end_time: str) -> int:
    return parse_time(end_time) - parse_time(start_time)


def safe_duration_hours(start_time: str, end_time: str) -> float:
    """
    Duration in hours for aggregation. Never raises: malformed values and
    end-before-start contribute zero.
    """
    try:
        minutes = duration_minutes(start_time, end_time)
    except ValidationError:
        return 0.0
    return max(minutes, 0) / 60


def intervals_overlap(start_a: str, end_a: str, start_b: str, end_b: str) -> bool:
    return start_a < end_b and start_b < end_a


def validate_slot(booking_date: str, start_time: str, end_time: str, min_minutes: int) -> None:
    parse_date(booking_date)
    minutes = duration_minutes(start_time, end_time)
    if minutes <= 0:
        raise ValidationError("End time must be after start time")
    if minutes < min_minutes:
        raise ValidationError(f"Bookings must last at least {min_minutes} minutes")


def month_bounds(month: Optional[int], year: Optional[int]) -> Optional[tuple[str, str]]:
    """
    First and last calendar day of a month as `YYYY-MM-DD` strings, usable as
    inclusive bounds against the stored date column.
    """
    if month is None and year is None:
        return None
    if month is None or year is None:
        raise ValidationError("month and year must be given together")
    if not 1 <= month <= 12:
        raise ValidationError("month must be between 1 and 12")
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, 1).isoformat(), date(year, month, last_day).isoformat()
