"""
Error taxonomy for query compilation and response parsing.

Every error is scoped to a single logical query and carries its ref-id so
the caller can attach it to that query's result without failing the batch.
"""

from typing import Optional


class QueryError(Exception):
    """Base class for errors attributed to one logical query."""

    def __init__(self, message: str, ref_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.ref_id = ref_id

    def with_ref_id(self, ref_id: str) -> "QueryError":
        """Attach a ref-id if the error was raised without one."""
        if self.ref_id is None:
            self.ref_id = ref_id
        return self

    def __str__(self) -> str:
        if self.ref_id:
            return f"[{self.ref_id}] {self.message}"
        return self.message


class InvalidQuery(QueryError, ValueError):
    """Missing or contradictory fields caught at compile time."""


class UnsupportedAggregationType(QueryError):
    """Metric or bucket aggregation type that cannot be compiled."""

    def __init__(self, agg_type: str, ref_id: Optional[str] = None):
        super().__init__(f"unsupported aggregation type: {agg_type!r}", ref_id)
        self.agg_type = agg_type


class MalformedResponse(QueryError):
    """Response shape does not match the requested aggregation tree."""


class BackendError(QueryError):
    """A response entry carried an error object from the search backend."""


class TransportFailure(QueryError):
    """The multi-search request could not be delivered or answered."""
