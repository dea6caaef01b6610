"""Utility functions for time handling and text comparison."""

from .text import contains_ignore_case, normalize_tags
from .timestamps import (
    ensure_utc,
    format_timestamp,
    from_storage,
    parse_iso_datetime,
    to_storage,
    utc_now,
)

__all__ = [
    # Timestamps
    "utc_now",
    "ensure_utc",
    "parse_iso_datetime",
    "format_timestamp",
    "to_storage",
    "from_storage",
    # Text
    "contains_ignore_case",
    "normalize_tags",
]
