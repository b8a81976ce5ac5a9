"""
Date and time utilities for the scheduling engine.

Appointment dates and times are stored as naive calendar values in the
clinic's local time; only audit timestamps (created_at, updated_at,
cancelled_at) are timezone-aware, in UTC.
"""

import logging
from datetime import date, datetime, time, timezone
from typing import Union

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        Current datetime with UTC timezone
    """
    return datetime.now(timezone.utc)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2022-01-01", "2022-1-1")
    - YYYY/MM/DD (e.g., "2022/01/01", "2022/1/1")

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed or names a non-existent day
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def parse_time_string(time_str: str) -> time:
    """
    Parse a time-of-day string in HH:MM or HH:MM:SS format.

    Args:
        time_str: Time string such as "09:00" or "09:00:00"

    Returns:
        Time object with second precision

    Raises:
        ValueError: If the string is not a valid time of day
    """
    if not time_str or not time_str.strip():
        raise ValueError("Time string cannot be empty")

    time_str = time_str.strip()
    for fmt in ('%H:%M:%S', '%H:%M'):
        try:
            return datetime.strptime(time_str, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time format (expected HH:MM or HH:MM:SS): {time_str}")


def coerce_date(value: Union[date, str]) -> date:
    """Accept a date (or datetime) or a date string and return a date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date_string(value)
    raise ValueError(f"Expected a date or date string, got {type(value).__name__}")


def coerce_time(value: Union[time, str]) -> time:
    """Accept a time or a time string and return a second-precision time."""
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)
    if isinstance(value, str):
        return parse_time_string(value)
    raise ValueError(f"Expected a time or time string, got {type(value).__name__}")


def time_to_seconds(time_obj: time) -> int:
    """Seconds elapsed since midnight."""
    return time_obj.hour * 3600 + time_obj.minute * 60 + time_obj.second


def seconds_to_time(total_seconds: int) -> time:
    """
    Convert seconds since midnight back to a time of day.

    Raises:
        ValueError: If the value falls outside a single day
    """
    if total_seconds < 0 or total_seconds >= SECONDS_PER_DAY:
        raise ValueError(f"Seconds out of range for a time of day: {total_seconds}")
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return time(hours, minutes, seconds)


def format_time(time_obj: time) -> str:
    """Format time as HH:MM, or HH:MM:SS when seconds are set."""
    if time_obj.second:
        return time_obj.strftime('%H:%M:%S')
    return time_obj.strftime('%H:%M')
