"""Date and timestamp helpers"""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional

MS_PER_DAY = 24 * 60 * 60 * 1000

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_ONE_MS = timedelta(milliseconds=1)


def to_millis(value: datetime) -> int:
    """Convert a datetime to epoch milliseconds (naive values are taken as UTC)"""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return (value - _EPOCH) // _ONE_MS


def from_millis(ms: int) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime"""
    return _EPOCH + timedelta(milliseconds=ms)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Best-effort conversion of a stored timestamp to an aware UTC datetime.

    Accepts datetimes, ISO-8601 strings, epoch seconds and Firestore-style
    {"seconds": ..., "nanoseconds": ...} maps. Anything else yields None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if isinstance(value, dict):
        seconds = value.get("seconds", value.get("_seconds"))
        if isinstance(seconds, (int, float)) and not isinstance(seconds, bool):
            nanos = value.get("nanoseconds", value.get("_nanoseconds"))
            if not isinstance(nanos, (int, float)) or isinstance(nanos, bool):
                nanos = 0
            return parse_timestamp(seconds + nanos / 1e9)
    return None


def days_between(start: datetime, end: datetime) -> float:
    """Fractional days elapsed from start to end"""
    return (to_millis(end) - to_millis(start)) / MS_PER_DAY
