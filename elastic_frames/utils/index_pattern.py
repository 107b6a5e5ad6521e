"""
Index pattern resolution for time-based indices.

A pattern such as ``[logstash-]YYYY.MM.DD`` with a Daily interval expands to
one index name per day of the queried range. Text inside brackets is literal;
the rest uses moment-style date tokens.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from elastic_frames.errors import InvalidQuery
from elastic_frames.utils.validation import validate_index_pattern


INTERVALS = ("Hourly", "Daily", "Weekly", "Monthly", "Yearly")

_TOKENS = {
    "YYYY": "%Y",
    "GGGG": "%G",
    "YY": "%y",
    "MM": "%m",
    "WW": "%V",
    "DD": "%d",
    "HH": "%H",
}

_TOKEN_RE = re.compile(r"\[[^\]]*\]|YYYY|GGGG|YY|MM|WW|DD|HH|.", re.DOTALL)


def to_strftime(pattern: str) -> str:
    """Translate a bracketed moment-style pattern into a strftime format."""
    parts = []
    for token in _TOKEN_RE.findall(pattern):
        if token.startswith("[") and token.endswith("]"):
            parts.append(token[1:-1].replace("%", "%%"))
        elif token in _TOKENS:
            parts.append(_TOKENS[token])
        else:
            parts.append(token.replace("%", "%%"))
    return "".join(parts)


def _truncate(value: datetime, interval: str) -> datetime:
    value = value.astimezone(timezone.utc)
    if interval == "Hourly":
        return value.replace(minute=0, second=0, microsecond=0)
    day = value.replace(hour=0, minute=0, second=0, microsecond=0)
    if interval == "Daily":
        return day
    if interval == "Weekly":
        return day - timedelta(days=day.weekday())
    if interval == "Monthly":
        return day.replace(day=1)
    return day.replace(month=1, day=1)


def _step(value: datetime, interval: str) -> datetime:
    if interval == "Hourly":
        return value + timedelta(hours=1)
    if interval == "Daily":
        return value + timedelta(days=1)
    if interval == "Weekly":
        return value + timedelta(weeks=1)
    if interval == "Monthly":
        if value.month == 12:
            return value.replace(year=value.year + 1, month=1)
        return value.replace(month=value.month + 1)
    return value.replace(year=value.year + 1)


def resolve_indices(
    pattern: str,
    interval: Optional[str],
    start: datetime,
    end: datetime,
) -> List[str]:
    """
    Expand an index pattern over a time range.

    Args:
        pattern: Index pattern (plain, or bracketed date pattern)
        interval: One of INTERVALS, or None for a plain pattern
        start: Range start
        end: Range end

    Returns:
        Index names in chronological order, without duplicates

    Raises:
        InvalidQuery: If the interval is unknown or the pattern invalid
    """
    if not interval:
        validate_index_pattern(pattern)
        return [pattern]
    if interval not in INTERVALS:
        raise InvalidQuery(f"unknown index interval {interval!r}, expected one of {INTERVALS}")

    fmt = to_strftime(pattern)
    indices: List[str] = []
    current = _truncate(start, interval)
    last = end.astimezone(timezone.utc)
    while current <= last:
        name = current.strftime(fmt)
        if name not in indices:
            indices.append(name)
        current = _step(current, interval)

    for name in indices:
        validate_index_pattern(name)
    return indices


def resolve_index_header(
    pattern: str,
    interval: Optional[str],
    start: datetime,
    end: datetime,
) -> str:
    """Comma-joined index list for a multi-search header."""
    return ",".join(resolve_indices(pattern, interval, start, end))
