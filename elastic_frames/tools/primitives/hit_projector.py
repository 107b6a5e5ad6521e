"""
Hit projector: one frame, one row per hit, for raw_data and raw_document queries.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from elastic_frames.frame_types.frames import Field, FieldType, Frame, millis_to_datetime
from elastic_frames.frame_types.query import LogicalQuery, parse_datetime
from elastic_frames.utils.naming import metric_display_name
from elastic_frames.utils.response_parser import hit_to_row


def _parse_time(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return millis_to_datetime(value)
    return parse_datetime(value)


def infer_field_type(values: List[Any]) -> FieldType:
    """Column type from the non-null values of a column."""
    present = [v for v in values if v is not None]
    if not present:
        return FieldType.OTHER
    if all(isinstance(v, bool) for v in present):
        return FieldType.BOOLEAN
    if all(isinstance(v, (int, float)) and not isinstance(v, bool) for v in present):
        return FieldType.NUMBER
    if all(isinstance(v, str) for v in present):
        return FieldType.STRING
    return FieldType.OTHER


def _time_field(name: str, values: List[Any]) -> Field:
    try:
        return Field(name=name, type=FieldType.TIME, values=[_parse_time(v) for v in values])
    except (TypeError, ValueError, OverflowError):
        # Not a parseable timestamp after all; keep the raw values
        return Field(name=name, type=infer_field_type(values), values=values)


def column_order(columns: List[str], time_field: str) -> List[str]:
    """Time field first, then the rest sorted by name."""
    rest = sorted(c for c in columns if c != time_field)
    return ([time_field] if time_field in columns else []) + rest


def project_hits(hits: List[Dict[str, Any]], query: LogicalQuery) -> Frame:
    """
    Flatten search hits into a single frame.

    Columns are the union of hit metadata, flattened _source keys and
    requested fields across all hits; a hit lacking a column gets None.

    Args:
        hits: Hits in the order the backend returned them
        query: The raw_data/raw_document query

    Returns:
        One frame tagged with the query's ref-id
    """
    rows = [hit_to_row(hit) for hit in hits]

    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)

    fields: List[Field] = []
    for name in column_order(list(columns), query.time_field):
        values = [row.get(name) for row in rows]
        if name == query.time_field:
            fields.append(_time_field(name, values))
        else:
            fields.append(Field(name=name, type=infer_field_type(values), values=values))

    metric_type = query.metrics[0].type if query.metrics else None
    return Frame(
        name=metric_display_name(metric_type) if metric_type else query.ref_id,
        ref_id=query.ref_id,
        fields=fields,
        meta={"preferredVisualisationType": "table"},
    )
