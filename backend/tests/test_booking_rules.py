"""
Tests for the pure slot arithmetic helpers.
"""

import pytest

from app.core.exceptions import ValidationError
from app.services.booking_rules import (
    duration_minutes,
    intervals_overlap,
    month_bounds,
    parse_time,
    safe_duration_hours,
    validate_slot,
)


@pytest.mark.parametrize(
    "a, b, expected",
    [
        (("10:00", "12:00"), ("11:00", "13:00"), True),
        (("10:00", "12:00"), ("12:00", "13:00"), False),  # touching
        (("10:00", "12:00"), ("09:00", "10:00"), False),  # touching from below
        (("10:00", "12:00"), ("10:30", "11:30"), True),   # contained
        (("10:00", "12:00"), ("09:00", "13:00"), True),   # containing
        (("10:00", "12:00"), ("10:00", "12:00"), True),   # identical
        (("10:00", "12:00"), ("13:00", "14:00"), False),
    ],
)
def test_intervals_overlap(a, b, expected):
    """Half-open overlap test is symmetric and treats touching slots as free."""
    assert intervals_overlap(*a, *b) is expected
    assert intervals_overlap(*b, *a) is expected


def test_parse_time_minutes():
    assert parse_time("00:00") == 0
    assert parse_time("09:30") == 570
    assert parse_time("23:59") == 1439


@pytest.mark.parametrize("value", ["24:00", "9:30", "12:60", "noon", "", None])
def test_parse_time_rejects_malformed(value):
    with pytest.raises(ValidationError):
        parse_time(value)


def test_duration_floor_for_all_short_slots():
    """Every slot shorter than an hour is rejected, every slot of an hour or more passes."""
    for minutes in range(1, 60):
        end = f"{10 + minutes // 60:02d}:{minutes % 60:02d}"
        with pytest.raises(ValidationError):
            validate_slot("2024-01-15", "10:00", end, 60)

    for minutes in (60, 61, 90, 120, 600):
        end = f"{10 + minutes // 60:02d}:{minutes % 60:02d}"
        validate_slot("2024-01-15", "10:00", end, 60)


def test_validate_slot_rejects_reversed_and_empty_intervals():
    with pytest.raises(ValidationError, match="after start"):
        validate_slot("2024-01-15", "12:00", "10:00", 60)
    with pytest.raises(ValidationError, match="after start"):
        validate_slot("2024-01-15", "12:00", "12:00", 60)


@pytest.mark.parametrize("value", ["2024-13-01", "2024-02-30", "15/01/2024", "2024-1-5"])
def test_validate_slot_rejects_bad_dates(value):
    with pytest.raises(ValidationError):
        validate_slot(value, "10:00", "12:00", 60)


def test_month_bounds():
    assert month_bounds(1, 2024) == ("2024-01-01", "2024-01-31")
    assert month_bounds(2, 2024) == ("2024-02-01", "2024-02-29")
    assert month_bounds(2, 2023) == ("2023-02-01", "2023-02-28")
    assert month_bounds(12, 2024) == ("2024-12-01", "2024-12-31")
    assert month_bounds(None, None) is None


def test_month_bounds_requires_both_parts():
    with pytest.raises(ValidationError):
        month_bounds(1, None)
    with pytest.raises(ValidationError):
        month_bounds(None, 2024)
    with pytest.raises(ValidationError):
        month_bounds(13, 2024)


def test_safe_duration_hours_never_raises():
    assert safe_duration_hours("10:00", "12:30") == 2.5
    assert safe_duration_hours("12:00", "10:00") == 0.0
    assert safe_duration_hours("garbage", "10:00") == 0.0
    assert duration_minutes("10:00", "11:15") == 75
