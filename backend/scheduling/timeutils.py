"""UTC helpers and parsing of the organizer's free-form date/time strings."""
from datetime import datetime, timezone
from typing import Optional

import pytz

WEEKDAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything we store is UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_event_datetime(date_str: str, time_str: str, tz_name: str) -> Optional[datetime]:
    """Parse 'DD.MM.YYYY' + 'HH:MM' written in ``tz_name`` into a UTC datetime.

    Returns None when the strings do not follow that format; the event is
    still valid, it just has no parsed timestamp.
    """
    try:
        day, month, year = (int(part) for part in date_str.strip().split("."))
        hour, minute = (int(part) for part in time_str.strip().split(":"))
        naive = datetime(year, month, day, hour, minute)
    except ValueError:
        return None
    local = pytz.timezone(tz_name).localize(naive)
    return local.astimezone(timezone.utc)


def hours_until(moment: Optional[datetime], now: datetime) -> float:
    """Hours from ``now`` until ``moment``, clamped at 0."""
    if moment is None:
        return 0.0
    delta = ensure_utc(moment) - ensure_utc(now)
    return max(0.0, delta.total_seconds() / 3600)


def elapsed_seconds(since: datetime, now: datetime) -> int:
    return max(0, int((ensure_utc(now) - ensure_utc(since)).total_seconds()))


def local_weekday(moment: datetime, tz_name: str) -> str:
    local = ensure_utc(moment).astimezone(pytz.timezone(tz_name))
    return WEEKDAY_NAMES[local.weekday()]
