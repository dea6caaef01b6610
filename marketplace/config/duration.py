"""Duration parsing for configuration values such as the offer validity period."""

import re
from datetime import timedelta

_ISO_PATTERN = re.compile(r"^P(?:(\d+)W)?(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+)S)?)?$")
_HUMAN_PATTERN = re.compile(r"(\d+)\s*([smhdw])")
_UNIT_SECONDS = {"s": 1, "m": 60, "h": 3600, "d": 86400, "w": 604800}


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> timedelta:
    """Parse a duration string.

    Accepts human-readable values ("7d", "36h", "1d12h", "2w") and ISO-8601
    durations ("P7D", "PT36H", "P1W").

    Raises:
        DurationParseError: If the string is empty, malformed or zero

    Examples:
        >>> parse_duration("7d")
        datetime.timedelta(days=7)
        >>> parse_duration("PT36H")
        datetime.timedelta(days=1, seconds=43200)
    """
    if not isinstance(duration_str, str) or not duration_str.strip():
        raise DurationParseError("Duration string cannot be empty")

    value = duration_str.strip()
    if value.upper().startswith("P"):
        seconds = _parse_iso8601(value.upper())
    else:
        seconds = _parse_human_readable(value.lower())

    if seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return timedelta(seconds=seconds)


def _parse_iso8601(value: str) -> int:
    match = _ISO_PATTERN.match(value)
    if not match or value in ("P", "PT") or value.endswith("T"):
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{value}'. Expected format like 'P7D' or 'PT36H'"
        )

    weeks, days, hours, minutes, seconds = (int(part) if part else 0 for part in match.groups())
    return weeks * 604800 + days * 86400 + hours * 3600 + minutes * 60 + seconds


def _parse_human_readable(value: str) -> int:
    matches = _HUMAN_PATTERN.findall(value)
    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{value}'. Expected format like '7d', '36h' or '1d12h'"
        )

    # Reject leftovers such as "7days" or "7d!"
    parsed = "".join(f"{number}{unit}" for number, unit in matches)
    if parsed != re.sub(r"\s+", "", value):
        raise DurationParseError(
            f"Invalid characters in duration: '{value}'. "
            "Use only digits and units: s, m, h, d, w"
        )

    return sum(int(number) * _UNIT_SECONDS[unit] for number, unit in matches)


def humanize(delta: timedelta) -> str:
    """Render a timedelta coarsely ("7 days", "36 hours") for log messages."""
    seconds = int(delta.total_seconds())
    if seconds % 86400 == 0:
        days = seconds // 86400
        return f"{days} day{'s' if days != 1 else ''}"
    if seconds % 3600 == 0:
        hours = seconds // 3600
        return f"{hours} hour{'s' if hours != 1 else ''}"
    minutes = seconds // 60
    return f"{minutes} minute{'s' if minutes != 1 else ''}"
