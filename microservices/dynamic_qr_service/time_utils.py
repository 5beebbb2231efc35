"""
Timezone helpers for rule and schedule evaluation
"""

from datetime import datetime, timezone
from typing import Optional

import pytz


def get_timezone(tz_name: str):
    """
    Get a timezone object from an IANA timezone name.

    Raises ValueError for unknown names so pydantic validators and
    service validation can report them.
    """
    try:
        return pytz.timezone(tz_name or "UTC")
    except pytz.exceptions.UnknownTimeZoneError:
        raise ValueError(f"Unknown timezone: {tz_name}")


def ensure_utc(dt: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC"""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_local(dt: Optional[datetime], tz_name: str = "UTC") -> datetime:
    """Convert a datetime (now when None) to the given timezone"""
    instant = ensure_utc(dt) if dt is not None else utcnow()
    return instant.astimezone(get_timezone(tz_name))


def weekday_number(dt: datetime) -> int:
    """Day of week with 0 = Sunday ... 6 = Saturday"""
    return (dt.weekday() + 1) % 7


def localize(dt: datetime, tz_name: str = "UTC") -> datetime:
    """Read a naive datetime as wall time in tz_name; return the UTC instant"""
    if dt.tzinfo is None:
        dt = get_timezone(tz_name).localize(dt)
    return dt.astimezone(timezone.utc)
