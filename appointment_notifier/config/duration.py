"""Duration parsing utilities for configuration."""

import re


class DurationParseError(ValueError):
    """Raised when a duration string cannot be parsed."""

    pass


def parse_duration(duration_str: str) -> float:
    """
    Parse a duration string to seconds.

    Supports both human-readable formats and ISO-8601 durations:
    - Human-readable: "100ms", "5s", "15m", "1h", "2d"
    - ISO-8601: "PT5S", "PT15M", "PT1H", "P2D"

    Args:
        duration_str: Duration string to parse

    Returns:
        Duration in seconds (fractional for millisecond values)

    Raises:
        DurationParseError: If the duration string is invalid

    Examples:
        >>> parse_duration("5s")
        5.0
        >>> parse_duration("100ms")
        0.1
        >>> parse_duration("PT1H")
        3600.0
    """
    duration_str = duration_str.strip()

    if not duration_str:
        raise DurationParseError("Duration string cannot be empty")

    # Try ISO-8601 format first (starts with P)
    if duration_str.upper().startswith("P"):
        return _parse_iso8601_duration(duration_str)

    return _parse_human_readable_duration(duration_str)


def _parse_iso8601_duration(duration_str: str) -> float:
    """
    Parse ISO-8601 duration format.

    Supports: P[n]D, PT[n]H[n]M[n]S (seconds may be fractional)

    Raises:
        DurationParseError: If the format is invalid
    """
    duration_str = duration_str.upper()

    pattern = r"^P(?:(\d+)D)?(?:T(?:(\d+)H)?(?:(\d+)M)?(?:(\d+(?:\.\d+)?)S)?)?$"
    match = re.match(pattern, duration_str)

    if not match:
        raise DurationParseError(
            f"Invalid ISO-8601 duration format: '{duration_str}'. "
            "Expected format like 'P1D', 'PT1H30M', 'PT15M', or 'PT0.5S'"
        )

    days, hours, minutes, seconds = match.groups()

    total_seconds = 0.0
    if days:
        total_seconds += int(days) * 86400
    if hours:
        total_seconds += int(hours) * 3600
    if minutes:
        total_seconds += int(minutes) * 60
    if seconds:
        total_seconds += float(seconds)

    if total_seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total_seconds


def _parse_human_readable_duration(duration_str: str) -> float:
    """
    Parse human-readable duration format.

    Supports: 250ms, 30s, 15m, 1h, 2d
    Can combine multiple units: 1h30m, 1s500ms

    Raises:
        DurationParseError: If the format is invalid
    """
    # "ms" must be tried before "m" so 100ms is not read as 100 minutes
    pattern = r"(\d+)\s*(ms|[smhd])"
    matches = re.findall(pattern, duration_str.lower())

    if not matches:
        raise DurationParseError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format like '100ms', '5s', '15m', '1h', '2d', or combinations like '1h30m'"
        )

    parsed_str = "".join(f"{num}{unit}" for num, unit in matches)
    cleaned_input = re.sub(r"\s+", "", duration_str.lower())
    if parsed_str != cleaned_input:
        raise DurationParseError(
            f"Invalid characters in duration: '{duration_str}'. "
            "Use only digits and units: ms, s (seconds), m (minutes), h (hours), d (days)"
        )

    unit_multipliers = {
        "ms": 0.001,
        "s": 1,
        "m": 60,
        "h": 3600,
        "d": 86400,
    }

    total_seconds = 0.0
    for num, unit in matches:
        total_seconds += int(num) * unit_multipliers[unit]

    if total_seconds == 0:
        raise DurationParseError(f"Duration cannot be zero: '{duration_str}'")

    return total_seconds


def validate_duration_range(
    duration_seconds: float,
    min_seconds: float,
    max_seconds: float,
    label: str = "Duration",
) -> None:
    """
    Validate that a duration is within acceptable range.

    Args:
        duration_seconds: Duration in seconds to validate
        min_seconds: Minimum allowed duration
        max_seconds: Maximum allowed duration
        label: Name of the setting, used in error messages

    Raises:
        DurationParseError: If duration is outside the valid range
    """
    if duration_seconds < min_seconds:
        raise DurationParseError(
            f"{label} too short: {_seconds_to_human_readable(duration_seconds)}. "
            f"Minimum is {_seconds_to_human_readable(min_seconds)}."
        )

    if duration_seconds > max_seconds:
        raise DurationParseError(
            f"{label} too long: {_seconds_to_human_readable(duration_seconds)}. "
            f"Maximum is {_seconds_to_human_readable(max_seconds)}."
        )


def _seconds_to_human_readable(seconds: float) -> str:
    """Convert seconds to human-readable format (e.g. "100 milliseconds", "2 hours")."""
    if seconds < 1:
        millis = int(round(seconds * 1000))
        return f"{millis} millisecond{'s' if millis != 1 else ''}"
    elif seconds < 60:
        whole = int(seconds)
        return f"{whole} second{'s' if whole != 1 else ''}"
    elif seconds < 3600:
        minutes = int(seconds // 60)
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    elif seconds < 86400:
        hours = int(seconds // 3600)
        return f"{hours} hour{'s' if hours != 1 else ''}"
    else:
        days = int(seconds // 86400)
        return f"{days} day{'s' if days != 1 else ''}"
