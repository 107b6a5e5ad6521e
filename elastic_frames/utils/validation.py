"""
Input validation utilities.
"""

import re
from typing import Any, Optional

from elastic_frames.errors import InvalidQuery


def validate_index_pattern(pattern: str) -> None:
    """
    Validate an Elasticsearch index pattern.

    Args:
        pattern: Index pattern to validate

    Raises:
        InvalidQuery: If pattern is invalid
    """
    if not pattern:
        raise InvalidQuery("Index pattern cannot be empty")

    if pattern.startswith("_"):
        raise InvalidQuery("Index pattern cannot start with underscore")

    # Cross-cluster patterns use "cluster:index"
    invalid_chars = re.findall(r'[^a-zA-Z0-9\-_.*:]', pattern)
    if invalid_chars:
        raise InvalidQuery(f"Invalid characters in index pattern: {invalid_chars}")


def validate_size(size: int, max_size: int = 10000) -> int:
    """
    Validate and clamp size parameter.

    Args:
        size: Requested size
        max_size: Maximum allowed size

    Returns:
        Valid size value
    """
    return clamp_value(size, min_value=1, max_value=max_size)


def clamp_value(value: Any, min_value: Any, max_value: Any) -> Any:
    """
    Clamp a value between min and max.

    Args:
        value: Value to clamp
        min_value: Minimum allowed value
        max_value: Maximum allowed value

    Returns:
        Clamped value
    """
    return max(min_value, min(value, max_value))


def parse_int_setting(value: Any, default: Optional[int] = None, name: str = "setting") -> Optional[int]:
    """
    Parse an integer setting the editor may have sent as a string.

    Args:
        value: Raw setting value ("10", 10, None, "")
        default: Returned when the value is empty
        name: Setting name for the error message

    Returns:
        Parsed integer or the default

    Raises:
        InvalidQuery: If the value is not an integer
    """
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        raise InvalidQuery(f"{name} must be an integer, got {value!r}") from None


def parse_float_setting(value: Any, name: str = "setting") -> float:
    """
    Parse a numeric setting the editor may have sent as a string.

    Raises:
        InvalidQuery: If the value is not a number
    """
    try:
        return float(value)
    except (TypeError, ValueError):
        raise InvalidQuery(f"{name} must be a number, got {value!r}") from None
