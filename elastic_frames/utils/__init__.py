"""
Utility functions for elastic-frames.
"""

from .connection import get_elasticsearch_client, test_connection
from .validation import (
    validate_index_pattern,
    validate_size,
    clamp_value,
    parse_int_setting,
    parse_float_setting,
)
from .query_builder import (
    build_time_range_query,
    build_query_string_query,
    build_bool_query,
    build_sort_desc,
)
from .response_parser import (
    flatten_document,
    unwrap_field_values,
    hit_to_row,
)
from .naming import aggregation_name
from .index_pattern import resolve_indices, resolve_index_header
from .interval import parse_interval, format_interval, resolve_interval

__all__ = [
    # Connection
    "get_elasticsearch_client",
    "test_connection",
    # Validation
    "validate_index_pattern",
    "validate_size",
    "clamp_value",
    "parse_int_setting",
    "parse_float_setting",
    # Query building
    "build_time_range_query",
    "build_query_string_query",
    "build_bool_query",
    "build_sort_desc",
    # Response parsing
    "flatten_document",
    "unwrap_field_values",
    "hit_to_row",
    # Naming
    "aggregation_name",
    # Index patterns and intervals
    "resolve_indices",
    "resolve_index_header",
    "parse_interval",
    "format_interval",
    "resolve_interval",
]
