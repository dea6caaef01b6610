"""Timestamp utilities for UTC handling and storage formatting.

All timestamps handled by the engine are timezone-aware UTC. The database
stores them as fixed-width ISO 8601 strings so that lexical ordering matches
chronological ordering (offer expiry checks rely on this).
"""

from datetime import datetime, timezone
from typing import Optional

STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Current UTC time with timezone info

    Example:
        >>> now = utc_now()
        >>> now.tzinfo == timezone.utc
        True
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Ensure a datetime is timezone-aware and in UTC.

    Naive datetimes are treated as UTC; aware datetimes are converted.

    Args:
        dt: Datetime to convert (can be None)

    Returns:
        Timezone-aware datetime in UTC, or None if input is None
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def parse_iso_datetime(iso_string: Optional[str]) -> Optional[datetime]:
    """Parse an ISO 8601 datetime string to UTC datetime.

    Supports "2026-10-04T12:00:00Z", "2026-10-04T12:00:00+00:00",
    "2026-10-04T12:00:00" and "2026-10-04".

    Args:
        iso_string: ISO 8601 formatted datetime string

    Returns:
        Timezone-aware datetime in UTC, or None if parsing fails
    """
    if not iso_string or not iso_string.strip():
        return None

    cleaned = iso_string.strip()
    if cleaned.endswith("Z"):
        cleaned = cleaned[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(cleaned))
    except ValueError:
        try:
            return ensure_utc(datetime.strptime(iso_string.strip(), "%Y-%m-%d"))
        except ValueError:
            return None


def format_timestamp(dt: Optional[datetime]) -> Optional[str]:
    """Format a datetime as ISO 8601 string in UTC for API payloads.

    Example:
        >>> format_timestamp(datetime(2026, 10, 4, 12, 0, tzinfo=timezone.utc))
        '2026-10-04T12:00:00Z'
    """
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime("%Y-%m-%dT%H:%M:%SZ")


def to_storage(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime for database storage (microsecond precision, Z suffix)."""
    dt_utc = ensure_utc(dt)
    if dt_utc is None:
        return None
    return dt_utc.strftime(STORAGE_FORMAT)


def from_storage(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored timestamp string back to an aware UTC datetime."""
    if value is None or value == "":
        return None

    stripped = value.rstrip("Z")
    try:
        dt = datetime.strptime(stripped, "%Y-%m-%dT%H:%M:%S.%f")
    except ValueError:
        dt = datetime.strptime(stripped, "%Y-%m-%dT%H:%M:%S")

    return dt.replace(tzinfo=timezone.utc)
