"""
Logical query model: the vendor-neutral JSON a query editor submits.
"""

import json
from dataclasses import dataclass, field as dataclass_field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

from elastic_frames.errors import InvalidQuery, UnsupportedAggregationType
from elastic_frames.utils.validation import parse_float_setting, parse_int_setting


class MetricType(str, Enum):
    """Supported metric aggregation types."""
    COUNT = "count"
    AVG = "avg"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    CARDINALITY = "cardinality"
    PERCENTILES = "percentiles"
    EXTENDED_STATS = "extended_stats"
    RAW_DATA = "raw_data"
    RAW_DOCUMENT = "raw_document"
    DERIVATIVE = "derivative"
    CUMULATIVE_SUM = "cumulative_sum"
    MOVING_AVG = "moving_avg"
    MOVING_FN = "moving_fn"
    SERIAL_DIFF = "serial_diff"
    BUCKET_SCRIPT = "bucket_script"

    @property
    def is_raw(self) -> bool:
        return self in (MetricType.RAW_DATA, MetricType.RAW_DOCUMENT)

    @property
    def is_pipeline(self) -> bool:
        return self in PIPELINE_METRIC_TYPES

    @classmethod
    def parse(cls, value: Any, ref_id: Optional[str] = None) -> "MetricType":
        """Parse a metric type, rejecting anything not in the enum."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedAggregationType(str(value), ref_id) from None


PIPELINE_METRIC_TYPES = frozenset({
    MetricType.DERIVATIVE,
    MetricType.CUMULATIVE_SUM,
    MetricType.MOVING_AVG,
    MetricType.MOVING_FN,
    MetricType.SERIAL_DIFF,
    MetricType.BUCKET_SCRIPT,
})


class BucketAggType(str, Enum):
    """Supported bucket aggregation types."""
    DATE_HISTOGRAM = "date_histogram"
    HISTOGRAM = "histogram"
    TERMS = "terms"
    FILTERS = "filters"
    GEOHASH_GRID = "geohash_grid"

    @classmethod
    def parse(cls, value: Any, ref_id: Optional[str] = None) -> "BucketAggType":
        """Parse a bucket aggregation type, rejecting anything not in the enum."""
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedAggregationType(str(value), ref_id) from None


# Extended stats in the order their frames are emitted
EXTENDED_STATS = (
    "avg",
    "min",
    "max",
    "sum",
    "count",
    "std_deviation",
    "std_deviation_bounds_upper",
    "std_deviation_bounds_lower",
)

DEFAULT_PERCENTS = ("25", "50", "75", "95", "99")

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def parse_datetime(value: Union[int, float, str, datetime]) -> datetime:
    """Convert epoch millis, a numeric string or an ISO string to UTC datetime."""
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, (int, float)):
        return EPOCH + timedelta(milliseconds=value)
    text = str(value).strip()
    if text.lstrip("-").isdigit():
        return EPOCH + timedelta(milliseconds=int(text))
    parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def to_epoch_millis(value: datetime) -> int:
    """Convert a datetime to integer epoch milliseconds."""
    return int(round(value.timestamp() * 1000))


@dataclass(frozen=True)
class TimeRange:
    """Time range for queries."""
    start: datetime
    end: datetime

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeRange":
        """Create from a {"from": ..., "to": ...} dict (epoch ms or ISO)."""
        try:
            return cls(start=parse_datetime(data["from"]), end=parse_datetime(data["to"]))
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidQuery(f"invalid time range: {data!r}") from e

    @property
    def start_ms(self) -> int:
        return to_epoch_millis(self.start)

    @property
    def end_ms(self) -> int:
        return to_epoch_millis(self.end)

    @property
    def duration_ms(self) -> int:
        return self.end_ms - self.start_ms


def _object(value: Any, name: str, ref_id: Optional[str]) -> Dict[str, Any]:
    """Return ``value`` as a dict, treating null as empty."""
    if not value:
        return {}
    if not isinstance(value, dict):
        raise InvalidQuery(f"{name} must be an object, got {value!r}", ref_id)
    return dict(value)


def _object_list(value: Any, name: str, ref_id: Optional[str]) -> List[Dict[str, Any]]:
    if not value:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise InvalidQuery(f"{name} must be a list of objects", ref_id)
    return value


@dataclass(frozen=True)
class Metric:
    """A metric computed within each innermost bucket."""
    id: str
    type: MetricType
    field: Optional[str] = None
    settings: Dict[str, Any] = dataclass_field(default_factory=dict)
    meta: Dict[str, Any] = dataclass_field(default_factory=dict)
    hide: bool = False
    pipeline_variables: Tuple[Dict[str, Any], ...] = ()

    @classmethod
    def from_dict(cls, data: Dict[str, Any], ref_id: Optional[str] = None) -> "Metric":
        """Create from the JSON query model."""
        if data.get("id") in (None, ""):
            raise InvalidQuery("metric is missing an id", ref_id)
        metric = cls(
            id=str(data["id"]),
            type=MetricType.parse(data.get("type"), ref_id),
            field=data.get("field") or None,
            settings=_object(data.get("settings"), "metric settings", ref_id),
            meta=_object(data.get("meta"), "metric meta", ref_id),
            hide=bool(data.get("hide", False)),
            pipeline_variables=tuple(_object_list(data.get("pipelineVariables"), "pipelineVariables", ref_id)),
        )
        if metric.type == MetricType.PERCENTILES:
            percents = metric.settings.get("percents")
            if percents is not None and not isinstance(percents, list):
                raise InvalidQuery(f"percents must be a list, got {percents!r}", ref_id)
            try:
                for percent in metric.percents:
                    parse_float_setting(percent, name="percents")
            except InvalidQuery as e:
                raise e.with_ref_id(ref_id)
        return metric

    @property
    def percents(self) -> List[str]:
        """Configured percentiles, as the strings the editor submitted."""
        percents = self.settings.get("percents") or DEFAULT_PERCENTS
        return [str(p) for p in percents]

    @property
    def selected_stats(self) -> List[str]:
        """Extended stats flagged in meta, in emission order."""
        if not self.meta:
            return list(EXTENDED_STATS)
        return [stat for stat in EXTENDED_STATS if self.meta.get(stat)]


@dataclass(frozen=True)
class BucketAgg:
    """A bucket aggregation; each one nests inside the previous one."""
    id: str
    type: BucketAggType
    field: Optional[str] = None
    settings: Dict[str, Any] = dataclass_field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], ref_id: Optional[str] = None) -> "BucketAgg":
        """Create from the JSON query model."""
        if data.get("id") in (None, ""):
            raise InvalidQuery("bucket aggregation is missing an id", ref_id)
        return cls(
            id=str(data["id"]),
            type=BucketAggType.parse(data.get("type"), ref_id),
            field=data.get("field") or None,
            settings=_object(data.get("settings"), "bucket aggregation settings", ref_id),
        )


@dataclass(frozen=True)
class LogicalQuery:
    """One query of a batch, identified by its ref-id."""
    ref_id: str
    time_field: str
    time_range: TimeRange
    metrics: Tuple[Metric, ...] = ()
    bucket_aggs: Tuple[BucketAgg, ...] = ()
    query: str = ""
    alias: str = ""
    interval_ms: Optional[int] = None
    max_data_points: Optional[int] = None

    @classmethod
    def from_dict(
        cls,
        data: Dict[str, Any],
        time_range: Optional[TimeRange] = None,
        default_time_field: Optional[str] = None,
    ) -> "LogicalQuery":
        """
        Create from the JSON query model.

        Args:
            data: One query object (refId, timeField, metrics, bucketAggs, ...)
            time_range: Batch time range, overridden by a per-query "timeRange"
            default_time_field: Used when the query has no timeField

        Raises:
            InvalidQuery: If required fields are missing or ids collide
            UnsupportedAggregationType: If a metric or bucket type is unknown
        """
        ref_id = str(data.get("refId") or "A")

        if data.get("timeRange"):
            try:
                time_range = TimeRange.from_dict(data["timeRange"])
            except InvalidQuery as e:
                raise e.with_ref_id(ref_id)
        if time_range is None:
            raise InvalidQuery("query has no time range", ref_id)

        time_field = data.get("timeField") or default_time_field
        if not time_field:
            raise InvalidQuery("query has no time field", ref_id)

        metrics = tuple(Metric.from_dict(m, ref_id) for m in _object_list(data.get("metrics"), "metrics", ref_id))
        bucket_aggs = tuple(
            BucketAgg.from_dict(b, ref_id) for b in _object_list(data.get("bucketAggs"), "bucketAggs", ref_id)
        )

        _check_unique_ids([m.id for m in metrics], "metric", ref_id)
        _check_unique_ids([b.id for b in bucket_aggs], "bucket aggregation", ref_id)
        shared = {m.id for m in metrics} & {b.id for b in bucket_aggs}
        if shared:
            raise InvalidQuery(f"ids used by both a metric and a bucket aggregation: {sorted(shared)}", ref_id)

        try:
            interval_ms = parse_int_setting(data.get("intervalMs"), name="intervalMs")
            max_data_points = parse_int_setting(data.get("maxDataPoints"), name="maxDataPoints")
        except InvalidQuery as e:
            raise e.with_ref_id(ref_id)

        return cls(
            ref_id=ref_id,
            time_field=time_field,
            time_range=time_range,
            metrics=metrics,
            bucket_aggs=bucket_aggs,
            query=data.get("query") or "",
            alias=data.get("alias") or "",
            interval_ms=interval_ms or None,
            max_data_points=max_data_points or None,
        )

    @property
    def is_raw(self) -> bool:
        """True when the query projects hits instead of aggregating."""
        return any(m.type.is_raw for m in self.metrics)

    def metric_by_id(self, metric_id: str) -> Optional[Metric]:
        for metric in self.metrics:
            if metric.id == metric_id:
                return metric
        return None


def _check_unique_ids(ids: List[str], kind: str, ref_id: str) -> None:
    seen = set()
    for agg_id in ids:
        if agg_id in seen:
            raise InvalidQuery(f"duplicate {kind} id {agg_id!r}", ref_id)
        seen.add(agg_id)


def load_query_models(raw: Union[bytes, str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    """
    Load the JSON query model list.

    Args:
        raw: JSON bytes/str of a list of query objects, or the list itself

    Returns:
        List of query dicts, in submission order

    Raises:
        InvalidQuery: If the payload is not a JSON list of objects
    """
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise InvalidQuery(f"query model is not valid JSON: {e}") from e
    if isinstance(raw, dict):
        raw = raw.get("queries", [raw])
    if not isinstance(raw, list) or not all(isinstance(q, dict) for q in raw):
        raise InvalidQuery("query model must be a list of objects")
    return raw
