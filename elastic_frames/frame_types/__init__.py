"""
Type definitions for elastic-frames.
"""

from .query import (
    BucketAgg,
    BucketAggType,
    LogicalQuery,
    Metric,
    MetricType,
    TimeRange,
    load_query_models,
)

from .frames import (
    DataResponse,
    Field,
    FieldType,
    Frame,
    QueryDataResponse,
)

from .response import (
    AggResult,
    MetricResult,
    MultiSearchResponse,
    NestedBuckets,
    ResponseBucket,
    SearchResponse,
)

__all__ = [
    # Query model
    "BucketAgg",
    "BucketAggType",
    "LogicalQuery",
    "Metric",
    "MetricType",
    "TimeRange",
    "load_query_models",
    # Frames
    "DataResponse",
    "Field",
    "FieldType",
    "Frame",
    "QueryDataResponse",
    # Response
    "AggResult",
    "MetricResult",
    "MultiSearchResponse",
    "NestedBuckets",
    "ResponseBucket",
    "SearchResponse",
]
