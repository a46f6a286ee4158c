"""
Datetime utilities for consistent timezone handling across the application.

Clinic schedules are expressed in clinic-local wall-clock time and the
scheduling engine works on naive clinic-local datetimes. Appointment start/end
values are stored as UTC instants so that a professional working for clinics in
different timezones is compared on one timeline; conversion happens at the
boundary with `to_utc` and `to_clinic_local`. Audit timestamps
(created_at/updated_at) are stored in UTC.
"""

import logging
from datetime import datetime, timezone, timedelta, date, time
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.constants import AFTERNOON_STARTS_AT_HOUR, EVENING_STARTS_AT_HOUR

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def get_timezone(name: str) -> ZoneInfo:
    """
    Resolve an IANA timezone identifier.

    Args:
        name: Timezone identifier such as "America/Sao_Paulo"

    Returns:
        ZoneInfo for the identifier

    Raises:
        ValueError: If the identifier is empty or unknown
    """
    if not name or not name.strip():
        raise ValueError("Timezone cannot be empty")
    try:
        return ZoneInfo(name.strip())
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {name}") from e


def to_clinic_local(dt: datetime, tz: ZoneInfo) -> datetime:
    """
    Convert a datetime into naive clinic-local wall-clock time.

    Naive inputs are assumed to already be clinic-local and are returned unchanged.

    Args:
        dt: Datetime to convert
        tz: Clinic timezone

    Returns:
        Naive datetime in clinic-local time
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(tz).replace(tzinfo=None)


def to_utc(dt: datetime, tz: ZoneInfo) -> datetime:
    """
    Convert a datetime into a timezone-aware UTC instant.

    Args:
        dt: Datetime to convert; naive values are taken as clinic-local time in `tz`
        tz: Clinic timezone

    Returns:
        Aware datetime in UTC
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz)
    return dt.astimezone(timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the naive [start, end) datetimes covering a calendar day."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def parse_time_string(time_str: str) -> time:
    """
    Parse a time string in HH:MM (24-hour) format.

    Args:
        time_str: Time string such as "08:00" or "13:30"

    Returns:
        Time object

    Raises:
        ValueError: If time string cannot be parsed
    """
    if not time_str or not time_str.strip():
        raise ValueError("Time string cannot be empty")

    parts = time_str.strip().split(':')
    if len(parts) != 2:
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str}")

    try:
        hour = int(parts[0])
        minute = int(parts[1])
        return time(hour, minute)
    except ValueError as e:
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str}") from e


def format_time(value: time) -> str:
    """Format a time as HH:MM."""
    return value.strftime('%H:%M')


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Automatically normalizes single-digit months/days ("2024-1-4").

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()
    separator = '/' if '/' in date_str else '-'
    parts = date_str.split(separator)
    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    normalized = f"{parts[0].zfill(4)}-{parts[1].zfill(2)}-{parts[2].zfill(2)}"
    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def slot_period(start: datetime) -> str:
    """
    Classify a clinic-local start time for presentation.

    Returns:
        'morning' (before 12:00), 'afternoon' (12:00-18:00) or 'evening' (18:00 onwards)
    """
    if start.hour < AFTERNOON_STARTS_AT_HOUR:
        return 'morning'
    if start.hour < EVENING_STARTS_AT_HOUR:
        return 'afternoon'
    return 'evening'


def parse_iso_datetime(value: str) -> Optional[datetime]:
    """
    Parse an RFC 3339 / ISO 8601 datetime string, accepting a trailing 'Z'.

    Returns None for empty input.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if not value:
        return None
    return datetime.fromisoformat(value.replace('Z', '+00:00'))
