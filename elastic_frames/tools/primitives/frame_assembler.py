"""
Frame assembler: pivots walked bucket rows into frames.

When the innermost bucket aggregation is a date histogram every series
becomes a time-series frame (Time + Value), one per combination of outer
bucket keys, metric and percentile/statistic. Otherwise each
metric/percentile/statistic becomes one table frame with a column per
bucket dimension plus a value column.
"""

import re
from typing import Any, Dict, List, Optional, Tuple

from elastic_frames.frame_types.frames import Field, FieldType, Frame, millis_to_datetime
from elastic_frames.frame_types.query import BucketAggType, LogicalQuery, Metric, MetricType
from elastic_frames.tools.primitives.response_walker import PathKey, WalkResult, WalkedRow
from elastic_frames.utils.naming import (
    extended_stat_display_name,
    metric_display_name,
    percentile_label,
)
from elastic_frames.utils.validation import parse_int_setting


_ALIAS_RE = re.compile(r"\{\{([\s\S]+?)\}\}")


# ========== NAMING ==========

def describe_metric(metric: Metric) -> str:
    """"Count", or the metric's display name followed by its field."""
    if metric.type == MetricType.COUNT or not metric.field:
        return metric_display_name(metric.type)
    return f"{metric_display_name(metric.type)} {metric.field}"


def base_metric_name(metric: Metric, sub_key: Optional[str]) -> str:
    """Metric name without field: "Average", "p75", "Std Dev Upper"."""
    if metric.type == MetricType.PERCENTILES:
        return percentile_label(sub_key)
    if metric.type == MetricType.EXTENDED_STATS:
        return extended_stat_display_name(sub_key)
    return metric_display_name(metric.type)


def _script_text(script: Any) -> str:
    if isinstance(script, dict):
        return str(script.get("source") or script.get("inline") or "")
    return str(script or "")


def full_metric_name(query: LogicalQuery, metric: Metric, sub_key: Optional[str]) -> str:
    """Metric name including the field or the metric a pipeline reads."""
    name = base_metric_name(metric, sub_key)

    if metric.type == MetricType.BUCKET_SCRIPT:
        script = _script_text(metric.settings.get("script"))
        for variable in metric.pipeline_variables:
            source = query.metric_by_id(str(variable.get("pipelineAgg")))
            if source is not None:
                script = script.replace(f"params.{variable.get('name')}", describe_metric(source))
        return f"{name} {script}".strip()

    if metric.type.is_pipeline:
        source = query.metric_by_id(str(metric.field))
        if source is None:
            return "Unset"
        return f"{name} {describe_metric(source)}"

    if metric.field and metric.type != MetricType.COUNT:
        return f"{name} {metric.field}"
    return name


def render_alias(alias: str, labels: Dict[str, str], metric_name: str, field: Optional[str]) -> str:
    """Substitute {{term <field>}}, {{metric}}, {{field}} and {{<label>}}."""

    def replace(match: "re.Match") -> str:
        group = match.group(1).strip()
        if group.startswith("term "):
            return labels.get(group[5:].strip(), match.group(0))
        if group == "metric":
            return metric_name
        if group == "field":
            return field or ""
        return labels.get(group, match.group(0))

    return _ALIAS_RE.sub(replace, alias)


def series_name(
    query: LogicalQuery,
    metric: Metric,
    sub_key: Optional[str],
    labels: Dict[str, str],
    series_count: int,
) -> str:
    """Display name of one series."""
    if query.alias:
        return render_alias(query.alias, labels, base_metric_name(metric, sub_key), metric.field)

    full_name = full_metric_name(query, metric, sub_key)
    if not labels:
        return full_name
    prefix = " ".join(labels.values())
    if series_count > 1:
        return f"{prefix} {full_name}"
    return prefix


# ========== TIME SERIES ==========

def _group_by_parent(rows: List[WalkedRow]) -> Dict[Tuple[PathKey, ...], List[WalkedRow]]:
    groups: Dict[Tuple[PathKey, ...], List[WalkedRow]] = {}
    for row in rows:
        groups.setdefault(row.parent_path, []).append(row)
    return groups


def _trim(rows: List[WalkedRow], trim_edges: int) -> List[WalkedRow]:
    if trim_edges <= 0:
        return rows
    return rows[trim_edges:len(rows) - trim_edges]


def assemble_time_series(result: WalkResult) -> List[Frame]:
    """One Time/Value frame per (outer bucket keys, series)."""
    query = result.query
    trim_edges = parse_int_setting(result.leaf.settings.get("trimEdges"), 0, "trimEdges")

    groups = _group_by_parent(result.rows)
    if not groups and len(query.bucket_aggs) == 1:
        # Keep one frame per series even when the histogram came back empty
        groups = {(): []}

    frames: List[Frame] = []
    for parent_path, rows in groups.items():
        labels = {step.dimension: step.label for step in parent_path}
        rows = _trim(rows, trim_edges)
        times = [millis_to_datetime(row.key) for row in rows]

        for metric_id, sub_key in result.series_keys:
            metric = query.metric_by_id(metric_id)
            name = series_name(query, metric, sub_key, labels, len(result.series_keys))
            frames.append(Frame(
                name=name,
                ref_id=query.ref_id,
                fields=[
                    Field(name="Time", type=FieldType.TIME, values=list(times)),
                    Field(
                        name="Value",
                        type=FieldType.NUMBER,
                        values=[row.values.get((metric_id, sub_key)) for row in rows],
                        labels=dict(labels),
                        display_name=name,
                    ),
                ],
            ))
    return frames


# ========== TABLES ==========

def _dimension_field(name: str, agg_type: BucketAggType, keys: List[Any]) -> Field:
    if agg_type == BucketAggType.DATE_HISTOGRAM:
        return Field(name=name, type=FieldType.TIME, values=[millis_to_datetime(k) for k in keys])
    numeric = all(isinstance(k, (int, float)) and not isinstance(k, bool) for k in keys)
    if agg_type == BucketAggType.HISTOGRAM or (keys and numeric):
        return Field(name=name, type=FieldType.NUMBER, values=[float(k) for k in keys])
    return Field(name=name, type=FieldType.STRING, values=[str(k) for k in keys])


def assemble_tables(result: WalkResult) -> List[Frame]:
    """One frame per series with a column per bucket dimension."""
    query = result.query
    dimension_fields = [
        _dimension_field(dimension, agg.type, [row.path[i].key for row in result.rows])
        for i, (dimension, agg) in enumerate(zip(result.dimensions, query.bucket_aggs))
    ]

    frames: List[Frame] = []
    for metric_id, sub_key in result.series_keys:
        metric = query.metric_by_id(metric_id)
        name = series_name(query, metric, sub_key, {}, len(result.series_keys))
        value_field = Field(
            name=name,
            type=FieldType.NUMBER,
            values=[row.values.get((metric_id, sub_key)) for row in result.rows],
        )
        fields = [Field(name=f.name, type=f.type, values=list(f.values)) for f in dimension_fields]
        frames.append(Frame(name=name, ref_id=query.ref_id, fields=fields + [value_field]))
    return frames


def assemble_frames(result: WalkResult) -> List[Frame]:
    """
    Pivot a walk result into frames tagged with the query's ref-id.

    Args:
        result: Output of walk_response

    Returns:
        Frames in series order; several frames may share the ref-id
    """
    if result.leaf.type == BucketAggType.DATE_HISTOGRAM:
        return assemble_time_series(result)
    return assemble_tables(result)
