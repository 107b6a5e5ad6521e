"""elastic-frames - compile time-series queries to Elasticsearch multi-search and shape results into frames."""

__version__ = "0.1.0"

from .errors import (
    BackendError,
    InvalidQuery,
    MalformedResponse,
    QueryError,
    TransportFailure,
    UnsupportedAggregationType,
)
from .frame_types import (
    DataResponse,
    Field,
    FieldType,
    Frame,
    LogicalQuery,
    QueryDataResponse,
    TimeRange,
)
from .tools.flows import compile_queries, parse_multisearch_response, query_data

__all__ = [
    "BackendError",
    "InvalidQuery",
    "MalformedResponse",
    "QueryError",
    "TransportFailure",
    "UnsupportedAggregationType",
    "DataResponse",
    "Field",
    "FieldType",
    "Frame",
    "LogicalQuery",
    "QueryDataResponse",
    "TimeRange",
    "compile_queries",
    "parse_multisearch_response",
    "query_data",
]
