"""
Aggregation tree builder: compiles one logical query into a multi-search
header and body.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from elastic_frames.config.environments import DatasourceSettings, get_datasource_settings, get_default
from elastic_frames.errors import InvalidQuery, QueryError, UnsupportedAggregationType
from elastic_frames.frame_types.query import BucketAgg, BucketAggType, LogicalQuery, Metric, MetricType
from elastic_frames.tools.primitives.metric_strategies import get_strategy
from elastic_frames.utils.index_pattern import resolve_index_header
from elastic_frames.utils.interval import is_calendar_interval, resolve_interval
from elastic_frames.utils.naming import aggregation_name, normalize_percent
from elastic_frames.utils.query_builder import (
    build_bool_query,
    build_query_string_query,
    build_sort_desc,
    build_time_range_query,
)
from elastic_frames.utils.validation import parse_float_setting, parse_int_setting, validate_size


logger = logging.getLogger(__name__)

# Innermost aggregations that pipeline metrics other than bucket_script can live under
HISTOGRAM_TYPES = (BucketAggType.DATE_HISTOGRAM, BucketAggType.HISTOGRAM)


@dataclass
class AggregationNode:
    """A request aggregation and its named sub-aggregations."""
    name: str
    definition: Dict[str, Any]
    children: Dict[str, "AggregationNode"] = field(default_factory=dict)

    def add(self, child: "AggregationNode") -> "AggregationNode":
        self.children[child.name] = child
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Render as Elasticsearch aggregation DSL."""
        data = dict(self.definition)
        if self.children:
            data["aggs"] = {name: child.to_dict() for name, child in self.children.items()}
        return data


@dataclass
class SearchRequest:
    """One header/body pair of a multi-search request."""
    ref_id: str
    header: Dict[str, Any]
    body: Dict[str, Any]


def _number(value: Any, name: str) -> Any:
    number = parse_float_setting(value, name=name)
    return int(number) if number.is_integer() else number


# ========== BUCKET DEFINITIONS ==========

def _date_histogram(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    interval = resolve_interval(
        agg.settings.get("interval"),
        duration_ms=query.time_range.duration_ms,
        interval_ms=query.interval_ms,
        max_data_points=query.max_data_points,
        min_interval=settings.time_interval,
    )
    body: Dict[str, Any] = {
        "field": agg.field or query.time_field,
        "min_doc_count": parse_int_setting(agg.settings.get("min_doc_count"), 0, "min_doc_count"),
        "extended_bounds": {"min": query.time_range.start_ms, "max": query.time_range.end_ms},
        "format": "epoch_millis",
    }
    body["calendar_interval" if is_calendar_interval(interval) else "fixed_interval"] = interval
    if agg.settings.get("timeZone"):
        body["time_zone"] = agg.settings["timeZone"]
    if agg.settings.get("offset"):
        body["offset"] = agg.settings["offset"]
    return {"date_histogram": body}


def _histogram(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "field": agg.field,
        "interval": _number(agg.settings.get("interval") or get_default("histogram_interval"), "interval"),
        "min_doc_count": parse_int_setting(agg.settings.get("min_doc_count"), 0, "min_doc_count"),
    }
    if agg.settings.get("missing") not in (None, ""):
        body["missing"] = _number(agg.settings["missing"], "missing")
    return {"histogram": body}


def _terms_order_key(order_by: str, query: LogicalQuery) -> str:
    if order_by == "_term":
        return "_key"
    metric = query.metric_by_id(order_by)
    if metric is None:
        return order_by
    if metric.type == MetricType.COUNT:
        return "_count"
    name = aggregation_name(metric.id)
    if metric.type == MetricType.PERCENTILES:
        return f"{name}[{normalize_percent(metric.percents[0])}]"
    if metric.type == MetricType.EXTENDED_STATS:
        stats = [s for s in metric.selected_stats if not s.startswith("std_deviation_bounds")]
        return f"{name}.{stats[0] if stats else 'avg'}"
    return name


def _terms(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    size = parse_int_setting(agg.settings.get("size"), 0, "size")
    body: Dict[str, Any] = {
        "field": agg.field,
        "size": size if size and size > 0 else get_default("terms_size"),
    }
    order_by = agg.settings.get("orderBy")
    if order_by:
        order_key = _terms_order_key(str(order_by), query)
        body["order"] = {order_key: agg.settings.get("order") or "desc"}
    if agg.settings.get("min_doc_count") not in (None, ""):
        body["min_doc_count"] = parse_int_setting(agg.settings["min_doc_count"], name="min_doc_count")
    if agg.settings.get("missing") not in (None, ""):
        body["missing"] = agg.settings["missing"]
    return {"terms": body}


def _filters(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    filters = agg.settings.get("filters") or [{"query": "*", "label": ""}]
    keyed: Dict[str, Any] = {}
    for item in filters:
        text = item.get("query") or "*"
        keyed[item.get("label") or text] = build_query_string_query(text)
    return {"filters": {"filters": keyed}}


def _geohash_grid(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    precision = parse_int_setting(agg.settings.get("precision"), get_default("geohash_precision"), "precision")
    return {"geohash_grid": {"field": agg.field, "precision": precision}}


BucketBuilder = Callable[[BucketAgg, LogicalQuery, DatasourceSettings], Dict[str, Any]]

BUCKET_BUILDERS: Dict[BucketAggType, BucketBuilder] = {
    BucketAggType.DATE_HISTOGRAM: _date_histogram,
    BucketAggType.HISTOGRAM: _histogram,
    BucketAggType.TERMS: _terms,
    BucketAggType.FILTERS: _filters,
    BucketAggType.GEOHASH_GRID: _geohash_grid,
}

# Bucket types that cannot fall back to the query's time field
FIELD_REQUIRED = (BucketAggType.HISTOGRAM, BucketAggType.TERMS, BucketAggType.GEOHASH_GRID)


def build_bucket_node(agg: BucketAgg, query: LogicalQuery, settings: DatasourceSettings) -> AggregationNode:
    """
    Build the request node for one bucket aggregation.

    Raises:
        UnsupportedAggregationType: If the bucket type has no builder
        InvalidQuery: If a required field is missing
    """
    builder = BUCKET_BUILDERS.get(agg.type)
    if builder is None:
        raise UnsupportedAggregationType(str(getattr(agg.type, "value", agg.type)), query.ref_id)
    if agg.type in FIELD_REQUIRED and not agg.field:
        raise InvalidQuery(f"{agg.type.value} aggregation {agg.id!r} needs a field", query.ref_id)
    return AggregationNode(name=aggregation_name(agg.id), definition=builder(agg, query, settings))


def build_metric_node(metric: Metric, query: LogicalQuery) -> Optional[AggregationNode]:
    """Build the request node for one metric, or None for doc_count."""
    definition = get_strategy(metric, query.ref_id).build(metric, query)
    if definition is None:
        return None
    return AggregationNode(name=aggregation_name(metric.id), definition=definition)


# ========== TREE ==========

def build_aggregation_tree(query: LogicalQuery, settings: DatasourceSettings) -> AggregationNode:
    """
    Fold the bucket chain into nested nodes with metrics at the innermost level.

    Args:
        query: Aggregating logical query
        settings: Datasource settings

    Returns:
        The outermost aggregation node
    """
    if not query.bucket_aggs:
        raise InvalidQuery("query needs at least one bucket aggregation", query.ref_id)
    if not query.metrics:
        raise InvalidQuery("query needs at least one metric", query.ref_id)

    innermost = query.bucket_aggs[-1]
    for metric in query.metrics:
        if metric.type.is_pipeline and metric.type != MetricType.BUCKET_SCRIPT \
                and innermost.type not in HISTOGRAM_TYPES:
            raise InvalidQuery(
                f"{metric.type.value} metric {metric.id!r} needs a histogram or date_histogram as innermost bucket",
                query.ref_id,
            )

    node: Optional[AggregationNode] = None
    for agg in reversed(query.bucket_aggs):
        parent = build_bucket_node(agg, query, settings)
        if node is None:
            for metric in query.metrics:
                metric_node = build_metric_node(metric, query)
                if metric_node is not None:
                    parent.add(metric_node)
        else:
            parent.add(node)
            _add_order_metric(parent, agg, query)
        node = parent
    return node


def _add_order_metric(node: AggregationNode, agg: BucketAgg, query: LogicalQuery) -> None:
    """Terms ordered by a metric need that metric computed at their own level."""
    if agg.type != BucketAggType.TERMS:
        return
    metric = query.metric_by_id(str(agg.settings.get("orderBy") or ""))
    if metric is None or metric.type == MetricType.COUNT or metric.type.is_pipeline:
        return
    metric_node = build_metric_node(metric, query)
    if metric_node is not None and metric_node.name not in node.children:
        node.add(metric_node)


# ========== REQUEST ==========

def build_header(query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    """Multi-search header line for a query."""
    header: Dict[str, Any] = {
        "search_type": "query_then_fetch",
        "ignore_unavailable": True,
        "index": resolve_index_header(
            settings.index,
            settings.index_interval,
            query.time_range.start,
            query.time_range.end,
        ),
    }
    if settings.max_concurrent_shard_requests > 0:
        header["max_concurrent_shard_requests"] = settings.max_concurrent_shard_requests
    return header


def build_filter_query(query: LogicalQuery) -> Dict[str, Any]:
    """Time range filter plus the optional Lucene query."""
    filters: List[Dict[str, Any]] = [
        build_time_range_query(query.time_field, query.time_range.start_ms, query.time_range.end_ms)
    ]
    if query.query.strip():
        filters.append(build_query_string_query(query.query))
    return build_bool_query(filters)


def build_raw_body(query: LogicalQuery, settings: DatasourceSettings) -> Dict[str, Any]:
    """Body of a raw_data/raw_document query: sorted hits, no aggregations."""
    if len(query.metrics) > 1:
        raise InvalidQuery("raw data and raw document metrics cannot be combined with other metrics", query.ref_id)
    metric = query.metrics[0]
    size = validate_size(parse_int_setting(metric.settings.get("size"), settings.default_raw_size, "size"))
    return {
        "size": size,
        "query": build_filter_query(query),
        "sort": [
            build_sort_desc(query.time_field, unmapped_type="boolean"),
            build_sort_desc("_doc"),
        ],
        "docvalue_fields": [query.time_field],
        "script_fields": {},
    }


def build_search_request(
    query: LogicalQuery,
    settings: Optional[DatasourceSettings] = None,
) -> SearchRequest:
    """
    Compile one logical query into a multi-search header/body pair.

    Args:
        query: Logical query
        settings: Datasource settings (from configuration if omitted)

    Returns:
        SearchRequest tagged with the query's ref-id

    Raises:
        InvalidQuery: If required fields are missing or contradictory
        UnsupportedAggregationType: If a metric or bucket type is unknown
    """
    settings = settings or get_datasource_settings()
    try:
        header = build_header(query, settings)
        if query.is_raw:
            body = build_raw_body(query, settings)
        else:
            tree = build_aggregation_tree(query, settings)
            body = {
                "size": 0,
                "query": build_filter_query(query),
                "aggs": {tree.name: tree.to_dict()},
            }
    except QueryError as e:
        raise e.with_ref_id(query.ref_id)

    logger.debug("Compiled query %s (raw=%s)", query.ref_id, query.is_raw)
    return SearchRequest(ref_id=query.ref_id, header=header, body=body)
