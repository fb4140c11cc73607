"""Shared validation utilities"""

import re
from datetime import date, datetime, timezone
from typing import Optional

TIME_PATTERN = re.compile(r"^([0-9]{2}):([0-9]{2})$")
DATE_PATTERN = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")
DATE_FORMAT = "%Y-%m-%d"


def utcnow() -> datetime:
    """Current time as a naive UTC datetime (the convention used for all stored timestamps)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_time_to_minutes(value: Optional[str]) -> int:
    """
    Convert an "HH:MM" wall-clock string to minutes since midnight.

    Args:
        value: Time string with two-digit hour and minute

    Returns:
        Minutes since midnight (0 - 1439)

    Raises:
        ValueError: If the format is wrong or hour/minute are out of range
    """
    if not value:
        raise ValueError("Time is required")

    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")

    hours, minutes = int(match.group(1)), int(match.group(2))
    if not 0 <= hours <= 23 or not 0 <= minutes <= 59:
        raise ValueError("Time must be between 00:00 and 23:59")

    return hours * 60 + minutes


def validate_time(value: Optional[str]) -> str:
    """Validate an "HH:MM" string and return it stripped"""
    parse_time_to_minutes(value)
    return value.strip()


def minutes_to_time(total_minutes: int) -> str:
    """Format minutes since midnight as HH:MM (values past midnight are kept, e.g. 24:00)"""
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"


def parse_iso_date(value: Optional[str]) -> date:
    """
    Parse a "YYYY-MM-DD" calendar date.

    Raises:
        ValueError: If the value is missing or not a real calendar date
    """
    if not value:
        raise ValueError("Date is required")
    value = value.strip()
    # strptime alone accepts unpadded fields such as 2030-1-7
    if not DATE_PATTERN.match(value):
        raise ValueError("Date must be in YYYY-MM-DD format")
    try:
        return datetime.strptime(value, DATE_FORMAT).date()
    except ValueError as e:
        raise ValueError("Date must be a valid calendar date in YYYY-MM-DD format") from e


def combine_date_time(day: date, time_value: str) -> datetime:
    """Absolute (naive, wall-clock) start instant for a date and an HH:MM time"""
    minutes = parse_time_to_minutes(time_value)
    return datetime(day.year, day.month, day.day, minutes // 60, minutes % 60)
