"""
Interval parsing, formatting and auto-interval calculation for date histograms.
"""

import re
from typing import Optional

from elastic_frames.errors import InvalidQuery


UNIT_MS = {
    "ms": 1,
    "s": 1000,
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "M": 30 * 24 * 60 * 60 * 1000,
    "y": 365 * 24 * 60 * 60 * 1000,
}

# Units Elasticsearch only accepts as calendar_interval
CALENDAR_UNITS = ("w", "M", "q", "y")

AUTO_INTERVALS = ("auto", "$__interval", "")

# Candidate bucket widths for auto intervals, ascending
NICE_INTERVALS_MS = (
    10, 20, 50, 100, 200, 500,
    1000, 2000, 5000, 10000, 15000, 20000, 30000,
    60000, 2 * 60000, 5 * 60000, 10 * 60000, 15 * 60000, 20 * 60000, 30 * 60000,
    3600000, 2 * 3600000, 3 * 3600000, 6 * 3600000, 12 * 3600000,
    86400000, 7 * 86400000, 30 * 86400000, 365 * 86400000,
)

_INTERVAL_RE = re.compile(r"^\s*(\d+)\s*(ms|s|m|h|d|w|M|y)\s*$")


def parse_interval(text: str) -> int:
    """
    Parse an interval such as "10s" or "1h" into milliseconds.

    Raises:
        InvalidQuery: If the interval cannot be parsed
    """
    match = _INTERVAL_RE.match(str(text))
    if not match:
        raise InvalidQuery(f"invalid interval: {text!r}")
    return int(match.group(1)) * UNIT_MS[match.group(2)]


def format_interval(ms: int) -> str:
    """Format milliseconds using the largest fixed unit that divides evenly."""
    for unit in ("d", "h", "m", "s"):
        size = UNIT_MS[unit]
        if ms >= size and ms % size == 0:
            return f"{ms // size}{unit}"
    return f"{ms}ms"


def calculate_interval(duration_ms: int, max_data_points: int, min_interval_ms: int = 0) -> int:
    """
    Pick a bucket width so the range yields at most ``max_data_points`` buckets.

    Args:
        duration_ms: Length of the time range
        max_data_points: Upper bound on the number of buckets
        min_interval_ms: Lower bound on the result

    Returns:
        Interval in milliseconds, rounded up to a nice value
    """
    raw = duration_ms / max(1, max_data_points)
    for candidate in NICE_INTERVALS_MS:
        if candidate >= raw:
            return max(candidate, min_interval_ms)
    return max(NICE_INTERVALS_MS[-1], min_interval_ms)


def is_calendar_interval(interval: str) -> bool:
    return str(interval).strip().endswith(CALENDAR_UNITS)


def resolve_interval(
    setting: Optional[str],
    duration_ms: int,
    interval_ms: Optional[int] = None,
    max_data_points: Optional[int] = None,
    min_interval: str = "10s",
) -> str:
    """
    Resolve a date histogram interval setting to a concrete interval string.

    "auto" (or no setting) uses the query's interval when the caller computed
    one, otherwise derives one from the range; either way it is never smaller
    than ``min_interval``. Explicit intervals are returned unchanged.
    """
    if setting is not None and str(setting).strip() not in AUTO_INTERVALS:
        return str(setting).strip()

    min_ms = parse_interval(min_interval) if min_interval else 0
    if interval_ms:
        return format_interval(max(int(interval_ms), min_ms))
    return format_interval(calculate_interval(duration_ms, max_data_points or 1000, min_ms))
