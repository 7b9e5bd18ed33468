"""
Time helpers for the StudySphere platform.

All instants are stored and compared in UTC. Some database drivers (SQLite)
hand naive datetimes back, so values read from storage go through
``ensure_utc`` before they are compared with request input.
"""

from datetime import date, datetime, time, timedelta, timezone

import pytz


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive values are taken as UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def get_timezone(name: str) -> pytz.BaseTzInfo:
    return pytz.timezone(name)


def local_hour_to_utc(target_date: date, hour: int, tz_name: str) -> datetime:
    """
    Convert a wall-clock hour on ``target_date`` in ``tz_name`` to UTC.

    ``hour`` may be 24, meaning midnight at the end of the day.
    """
    if hour >= 24:
        target_date = target_date + timedelta(days=hour // 24)
        hour = hour % 24
    local = get_timezone(tz_name).localize(datetime.combine(target_date, time(hour)))
    return local.astimezone(timezone.utc)
