"""
Per-metric-type strategies.

Each metric type knows how to render its request aggregation, which series
it explodes into, and how to read a value for each series out of a bucket.
The aggregation builder and the response walker both dispatch through
``get_strategy`` so the two sides stay in agreement.
"""

from typing import Any, Dict, List, Optional

from elastic_frames.errors import InvalidQuery, UnsupportedAggregationType
from elastic_frames.frame_types.query import LogicalQuery, Metric, MetricType
from elastic_frames.frame_types.response import MetricResult, ResponseBucket
from elastic_frames.utils.naming import aggregation_name, normalize_percent
from elastic_frames.utils.validation import parse_float_setting, parse_int_setting


# Settings the editor sends as strings but Elasticsearch expects as numbers
INT_SETTINGS = ("window", "lag", "shift", "predict", "precision_threshold")
FLOAT_SETTINGS = ("sigma",)

# Settings consumed here rather than forwarded to Elasticsearch
LOCAL_SETTINGS = ("percents", "size", "trimEdges")


def to_number(value: Any) -> Optional[float]:
    """Coerce a response value to float; anything non-numeric becomes None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def coerce_settings(metric: Metric) -> Dict[str, Any]:
    """Copy metric settings for the request, converting numeric strings."""
    body: Dict[str, Any] = {}
    for key, value in metric.settings.items():
        if key in LOCAL_SETTINGS or value is None or value == "":
            continue
        if key in INT_SETTINGS:
            value = parse_int_setting(value, name=key)
        elif key in FLOAT_SETTINGS:
            value = parse_float_setting(value, name=key)
        body[key] = value
    return body


def buckets_path(query: LogicalQuery, metric_id: str) -> str:
    """
    Path from a pipeline aggregation to the metric it reads.

    Raises:
        InvalidQuery: If no metric has the referenced id
    """
    source = query.metric_by_id(str(metric_id))
    if source is None:
        raise InvalidQuery(f"pipeline metric references unknown metric id {metric_id!r}", query.ref_id)
    if source.type == MetricType.COUNT:
        return "_count"
    name = aggregation_name(source.id)
    if source.type == MetricType.PERCENTILES:
        return f"{name}[{normalize_percent(source.percents[0])}]"
    if source.type == MetricType.EXTENDED_STATS:
        return f"{name}.avg"
    return name


class MetricStrategy:
    """Base strategy: a single-value metric such as avg or sum."""

    requires_field = True

    def build(self, metric: Metric, query: LogicalQuery) -> Optional[Dict[str, Any]]:
        """Request aggregation body ``{type: {...}}``, or None if none is needed."""
        if self.requires_field and not metric.field and not metric.settings.get("script"):
            raise InvalidQuery(f"{metric.type.value} metric {metric.id!r} needs a field or script", query.ref_id)
        body = coerce_settings(metric)
        if metric.field:
            body["field"] = metric.field
        return {metric.type.value: body}

    def series_keys(self, metric: Metric) -> List[Optional[str]]:
        """Sub-keys this metric explodes into; [None] for a single series."""
        return [None]

    def extract(self, metric: Metric, bucket: ResponseBucket) -> Dict[Optional[str], Optional[float]]:
        """Values for each sub-key, read from one bucket."""
        result = self.result(metric, bucket)
        return {None: to_number(result.value) if result else None}

    def result(self, metric: Metric, bucket: ResponseBucket) -> Optional[MetricResult]:
        child = bucket.children.get(aggregation_name(metric.id))
        return child if isinstance(child, MetricResult) else None


class CountStrategy(MetricStrategy):
    """Document count; read from the bucket itself, nothing to request."""

    def build(self, metric, query):
        return None

    def extract(self, metric, bucket):
        return {None: to_number(bucket.doc_count)}


class PercentilesStrategy(MetricStrategy):
    """One series per configured percent."""

    def build(self, metric, query):
        body = super().build(metric, query)
        body["percentiles"]["percents"] = [
            parse_float_setting(p, name="percents") for p in metric.percents
        ]
        return body

    def series_keys(self, metric):
        return list(metric.percents)

    def extract(self, metric, bucket):
        result = self.result(metric, bucket)
        values = (result.get("values") if result else None) or {}
        # Elasticsearch may render 75 as "75.0"; match numerically
        by_percent = {normalize_percent(k): v for k, v in values.items()}
        return {p: to_number(by_percent.get(normalize_percent(p))) for p in metric.percents}


class ExtendedStatsStrategy(MetricStrategy):
    """One series per selected statistic."""

    def series_keys(self, metric):
        return metric.selected_stats

    def extract(self, metric, bucket):
        result = self.result(metric, bucket)
        values: Dict[Optional[str], Optional[float]] = {}
        for stat in metric.selected_stats:
            if result is None:
                values[stat] = None
            elif stat.startswith("std_deviation_bounds_"):
                bounds = result.get("std_deviation_bounds") or {}
                values[stat] = to_number(bounds.get(stat[len("std_deviation_bounds_"):]))
            else:
                values[stat] = to_number(result.get(stat))
        return values


class PipelineStrategy(MetricStrategy):
    """Pipeline aggregation reading one sibling metric through buckets_path."""

    def build(self, metric, query):
        if not metric.field:
            raise InvalidQuery(f"{metric.type.value} metric {metric.id!r} needs a source metric", query.ref_id)
        body = coerce_settings(metric)
        body["buckets_path"] = buckets_path(query, metric.field)
        return {metric.type.value: body}


class BucketScriptStrategy(MetricStrategy):
    """Bucket script combining several metrics through named variables."""

    def build(self, metric, query):
        if not metric.pipeline_variables:
            raise InvalidQuery(f"bucket_script metric {metric.id!r} has no variables", query.ref_id)
        if not metric.settings.get("script"):
            raise InvalidQuery(f"bucket_script metric {metric.id!r} has no script", query.ref_id)
        paths = {}
        for variable in metric.pipeline_variables:
            if not variable.get("name") or not variable.get("pipelineAgg"):
                raise InvalidQuery(f"bucket_script metric {metric.id!r} has an incomplete variable", query.ref_id)
            paths[variable["name"]] = buckets_path(query, variable["pipelineAgg"])
        body = coerce_settings(metric)
        body["buckets_path"] = paths
        return {metric.type.value: body}


class RawStrategy(MetricStrategy):
    """Raw hits; compiled and parsed outside the aggregation tree."""

    def build(self, metric, query):
        return None

    def series_keys(self, metric):
        return []

    def extract(self, metric, bucket):
        return {}


_SINGLE_VALUE = MetricStrategy()
_PIPELINE = PipelineStrategy()

STRATEGIES: Dict[MetricType, MetricStrategy] = {
    MetricType.COUNT: CountStrategy(),
    MetricType.AVG: _SINGLE_VALUE,
    MetricType.SUM: _SINGLE_VALUE,
    MetricType.MIN: _SINGLE_VALUE,
    MetricType.MAX: _SINGLE_VALUE,
    MetricType.CARDINALITY: _SINGLE_VALUE,
    MetricType.PERCENTILES: PercentilesStrategy(),
    MetricType.EXTENDED_STATS: ExtendedStatsStrategy(),
    MetricType.DERIVATIVE: _PIPELINE,
    MetricType.CUMULATIVE_SUM: _PIPELINE,
    MetricType.MOVING_AVG: _PIPELINE,
    MetricType.MOVING_FN: _PIPELINE,
    MetricType.SERIAL_DIFF: _PIPELINE,
    MetricType.BUCKET_SCRIPT: BucketScriptStrategy(),
    MetricType.RAW_DATA: RawStrategy(),
    MetricType.RAW_DOCUMENT: RawStrategy(),
}


def get_strategy(metric: Metric, ref_id: Optional[str] = None) -> MetricStrategy:
    """
    Strategy for a metric's type.

    Raises:
        UnsupportedAggregationType: If no strategy handles the type
    """
    try:
        return STRATEGIES[metric.type]
    except KeyError:
        raise UnsupportedAggregationType(str(getattr(metric.type, "value", metric.type)), ref_id) from None
