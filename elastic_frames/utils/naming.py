"""
Aggregation naming shared by the request builder and the response walker,
plus human-readable names for metrics and extended stats.
"""

from typing import Any, Union


METRIC_DISPLAY_NAMES = {
    "count": "Count",
    "avg": "Average",
    "sum": "Sum",
    "max": "Max",
    "min": "Min",
    "cardinality": "Unique Count",
    "percentiles": "Percentiles",
    "extended_stats": "Extended Stats",
    "raw_data": "Raw Data",
    "raw_document": "Raw Document",
    "derivative": "Derivative",
    "cumulative_sum": "Cumulative Sum",
    "moving_avg": "Moving Average",
    "moving_fn": "Moving Function",
    "serial_diff": "Serial Difference",
    "bucket_script": "Bucket Script",
}

EXTENDED_STAT_DISPLAY_NAMES = {
    "avg": "Avg",
    "min": "Min",
    "max": "Max",
    "sum": "Sum",
    "count": "Count",
    "std_deviation": "Std Dev",
    "std_deviation_bounds_upper": "Std Dev Upper",
    "std_deviation_bounds_lower": "Std Dev Lower",
}


def aggregation_name(agg_id: Union[str, int]) -> str:
    """
    Wire-level aggregation name for a metric or bucket aggregation id.

    The builder names every request aggregation with this function and the
    walker looks results up with it, so the two can never disagree.
    """
    return str(agg_id)


def metric_display_name(metric_type: Any) -> str:
    value = getattr(metric_type, "value", metric_type)
    return METRIC_DISPLAY_NAMES.get(value, str(value))


def extended_stat_display_name(stat: str) -> str:
    return EXTENDED_STAT_DISPLAY_NAMES.get(stat, stat)


def normalize_percent(percent: Any) -> str:
    """Canonical text for a percentile: "75", "75.0" and 75 all give "75"."""
    return f"{float(percent):g}"


def percentile_label(percent: Any) -> str:
    return "p" + normalize_percent(percent)
