"""
Response walker: descends the nested bucket tree of one response entry and
collects, per bucket path, the value of every metric series.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from elastic_frames.errors import MalformedResponse
from elastic_frames.frame_types.query import BucketAgg, BucketAggType, LogicalQuery
from elastic_frames.frame_types.response import AggResult, NestedBuckets, ResponseBucket
from elastic_frames.tools.primitives.metric_strategies import get_strategy
from elastic_frames.utils.naming import aggregation_name


# (metric id, sub-key); the sub-key is a percent or stat name, None otherwise
SeriesKey = Tuple[str, Optional[str]]


@dataclass(frozen=True)
class PathKey:
    """One step of a bucket path: which dimension and which bucket key."""
    dimension: str
    key: Any
    agg_type: BucketAggType
    key_as_string: Optional[str] = None

    @property
    def label(self) -> str:
        if self.agg_type == BucketAggType.DATE_HISTOGRAM and self.key_as_string:
            return self.key_as_string
        return str(self.key)


@dataclass
class WalkedRow:
    """A leaf bucket: its full path and the values of every series."""
    path: Tuple[PathKey, ...]
    doc_count: int
    values: Dict[SeriesKey, Optional[float]] = field(default_factory=dict)

    @property
    def parent_path(self) -> Tuple[PathKey, ...]:
        return self.path[:-1]

    @property
    def key(self) -> Any:
        return self.path[-1].key


@dataclass
class WalkResult:
    """Everything the frame assembler needs from one response entry."""
    query: LogicalQuery
    series_keys: List[SeriesKey]
    rows: List[WalkedRow]

    @property
    def leaf(self) -> BucketAgg:
        return self.query.bucket_aggs[-1]

    @property
    def dimensions(self) -> List[str]:
        return [dimension_name(agg, self.query) for agg in self.query.bucket_aggs]


def dimension_name(agg: BucketAgg, query: LogicalQuery) -> str:
    """Column / label name a bucket aggregation's keys are reported under."""
    if agg.type == BucketAggType.FILTERS:
        return "filter"
    if agg.type == BucketAggType.DATE_HISTOGRAM:
        return agg.field or query.time_field
    return agg.field or aggregation_name(agg.id)


def series_keys_for(query: LogicalQuery) -> List[SeriesKey]:
    """Visible metric series in emission order, percentiles and stats exploded."""
    keys: List[SeriesKey] = []
    for metric in query.metrics:
        if metric.hide:
            continue
        for sub_key in get_strategy(metric, query.ref_id).series_keys(metric):
            keys.append((metric.id, sub_key))
    return keys


def _extract(bucket: ResponseBucket, query: LogicalQuery) -> Dict[SeriesKey, Optional[float]]:
    values: Dict[SeriesKey, Optional[float]] = {}
    for metric in query.metrics:
        if metric.hide:
            continue
        for sub_key, value in get_strategy(metric, query.ref_id).extract(metric, bucket).items():
            values[(metric.id, sub_key)] = value
    return values


def _walk(
    children: Dict[str, AggResult],
    depth: int,
    path: Tuple[PathKey, ...],
    query: LogicalQuery,
    rows: List[WalkedRow],
) -> None:
    agg = query.bucket_aggs[depth]
    name = aggregation_name(agg.id)
    result = children.get(name)

    if result is None:
        raise MalformedResponse(f"response is missing aggregation {name!r}", query.ref_id)
    if not isinstance(result, NestedBuckets):
        raise MalformedResponse(f"aggregation {name!r} has no buckets", query.ref_id)

    dimension = dimension_name(agg, query)
    is_leaf = depth == len(query.bucket_aggs) - 1

    for bucket in result.buckets:
        bucket_path = path + (PathKey(dimension, bucket.key, agg.type, bucket.key_as_string),)
        if is_leaf:
            rows.append(WalkedRow(path=bucket_path, doc_count=bucket.doc_count, values=_extract(bucket, query)))
        else:
            _walk(bucket.children, depth + 1, bucket_path, query, rows)


def walk_response(
    aggregations: Optional[Dict[str, AggResult]],
    query: LogicalQuery,
) -> WalkResult:
    """
    Walk the aggregation results of one response entry.

    Rows come out in bucket arrival order, depth first. An empty bucket list
    contributes no rows; a bucket without an expected metric result yields
    None for that metric.

    Args:
        aggregations: Top-level aggregation results of the entry
        query: The logical query the entry answers

    Returns:
        WalkResult with one row per leaf bucket

    Raises:
        MalformedResponse: If an expected bucket aggregation is absent
    """
    if aggregations is None:
        raise MalformedResponse("response has no aggregations", query.ref_id)
    if not query.bucket_aggs:
        raise MalformedResponse("query has no bucket aggregations to walk", query.ref_id)

    rows: List[WalkedRow] = []
    _walk(aggregations, 0, (), query, rows)
    return WalkResult(query=query, series_keys=series_keys_for(query), rows=rows)
