"""
Timestamp utilities for consistent time handling across the stores.

All timestamps are persisted as integer UTC epoch microseconds so that range
filters and ordering are plain numeric comparisons and round-trips are exact.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get the current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Normalize a datetime to UTC.

    Naive datetimes are taken to already be in UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_epoch(value: datetime) -> float:
    """Convert a datetime to UTC epoch seconds.

    Args:
        value: datetime (naive values are treated as UTC)

    Returns:
        Seconds since the epoch
    """
    return ensure_utc(value).timestamp()


def from_epoch(seconds: Optional[float]) -> Optional[datetime]:
    """Convert UTC epoch seconds to a timezone-aware datetime."""
    if seconds is None:
        return None
    return datetime.fromtimestamp(float(seconds), tz=timezone.utc)


def parse_datetime(value: Union[None, str, float, int, datetime]) -> Optional[datetime]:
    """Parse an ISO-8601 string, epoch number or datetime into a UTC datetime.

    Args:
        value: Value to parse (None and empty strings yield None)

    Returns:
        Timezone-aware UTC datetime, or None
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        return from_epoch(value)
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_MICROSECOND = timedelta(microseconds=1)


def to_micros(value: datetime) -> int:
    """Convert a datetime to integer UTC epoch microseconds (exact)."""
    return (ensure_utc(value) - _EPOCH) // _MICROSECOND


def from_micros(micros: Optional[int]) -> Optional[datetime]:
    """Convert integer UTC epoch microseconds back to a datetime."""
    if micros is None:
        return None
    return _EPOCH + timedelta(microseconds=int(micros))


def duration_to_micros(value: timedelta) -> int:
    """Convert a timedelta to integer microseconds."""
    return value // _MICROSECOND
