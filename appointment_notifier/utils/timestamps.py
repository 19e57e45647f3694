"""Timestamp utilities for UTC handling and datetime parsing."""

from datetime import date, datetime, time, timezone
from typing import Optional, Union


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware ones are converted.

    Example:
        >>> ensure_utc(datetime(2023, 12, 15, 14, 0)).tzinfo == timezone.utc
        True
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: str) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports:
    - 2023-12-15T14:00:00.000Z
    - 2023-12-15T14:00:00+00:00
    - 2023-12-15T14:00:00
    - 2023-12-15

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not isinstance(iso_string, str) or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    # fromisoformat before 3.11 rejects the 'Z' suffix
    if cleaned.endswith(("Z", "z")):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        return None


def coerce_datetime(value: Union[str, date, datetime, None]) -> Optional[datetime]:
    """Turn an ISO string, date or datetime into a UTC datetime.

    Plain dates are taken as midnight UTC. Anything else yields None.
    """
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=timezone.utc)
    if isinstance(value, str):
        return parse_iso_datetime(value)
    return None


def format_timestamp(dt: datetime, include_milliseconds: bool = False) -> str:
    """Format a datetime as ISO 8601 string in UTC with 'Z' suffix.

    Example:
        >>> format_timestamp(datetime(2023, 12, 15, 12, 0, tzinfo=timezone.utc))
        '2023-12-15T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return ""

    if include_milliseconds:
        return dt_utc.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def to_epoch_millis(dt: datetime) -> int:
    """Convert datetime to milliseconds since the Unix epoch."""
    return int(ensure_utc(dt).timestamp() * 1000)
