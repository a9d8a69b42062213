"""
Utility functions for the application.
"""
from datetime import datetime, timezone
from typing import Callable
from zoneinfo import ZoneInfo

# Any zero-argument callable returning an aware datetime
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default clock: current time in UTC."""
    return datetime.now(timezone.utc)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_business_hours(moment: datetime, tz_name: str = "UTC", start_hour: int = 7, end_hour: int = 19) -> bool:
    """Mon-Fri, start_hour <= local hour < end_hour in the given timezone."""
    local = ensure_aware(moment).astimezone(ZoneInfo(tz_name))
    return local.weekday() < 5 and start_hour <= local.hour < end_hour


def local_hour(moment: datetime, tz_name: str = "UTC") -> int:
    return ensure_aware(moment).astimezone(ZoneInfo(tz_name)).hour
