import re

from shiftbook.errors import InvalidTimeFormat

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")


def parse_minutes_of_day(value: str) -> int:
    """
    Convert "HH:MM" or "HH:MM:SS" to whole minutes since midnight,
    ignoring seconds.
    """
    if not isinstance(value, str):
        raise InvalidTimeFormat(value)
    match = _TIME_RE.match(value.strip())
    if match is None:
        raise InvalidTimeFormat(value)

    hour, minute = int(match.group(1)), int(match.group(2))
    second = int(match.group(3) or 0)
    if hour > 23 or minute > 59 or second > 59:
        raise InvalidTimeFormat(value)
    return hour * 60 + minute


def parse_time_of_day(value: str) -> float:
    """Convert "HH:MM" or "HH:MM:SS" to decimal hours."""
    return parse_minutes_of_day(value) / 60


def format_hours(value: float) -> str:
    """Render decimal hours as "HH:MM"."""
    total_minutes = round(value * 60)
    return f"{total_minutes // 60:02d}:{total_minutes % 60:02d}"
