"""
Typed view of the multi-search response.

Each aggregation result inside a bucket is either a nested bucket list or a
metric sub-result, modelled as the ``AggResult`` tagged union.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from elastic_frames.errors import MalformedResponse


# Keys of a bucket object that are bucket properties, not sub-aggregations
BUCKET_PROPERTIES = frozenset({"key", "key_as_string", "doc_count", "from", "to", "from_as_string", "to_as_string"})


@dataclass
class MetricResult:
    """A metric sub-result object, e.g. {"value": 88} or {"values": {...}}."""
    raw: Dict[str, Any]

    def get(self, key: str, default: Any = None) -> Any:
        return self.raw.get(key, default)

    @property
    def value(self) -> Any:
        return self.raw.get("value")


@dataclass
class NestedBuckets:
    """A bucket aggregation result holding ordered buckets."""
    buckets: List["ResponseBucket"] = field(default_factory=list)
    keyed: bool = False


AggResult = Union[NestedBuckets, MetricResult]


@dataclass
class ResponseBucket:
    """One bucket: its key, document count and named sub-aggregation results."""
    key: Any
    doc_count: int = 0
    key_as_string: Optional[str] = None
    children: Dict[str, AggResult] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], key: Any = None) -> "ResponseBucket":
        """Create from a bucket object; ``key`` is supplied for keyed buckets."""
        if not isinstance(data, dict):
            raise MalformedResponse(f"bucket is not an object: {data!r}")
        return cls(
            key=data.get("key", key),
            doc_count=data.get("doc_count", 0),
            key_as_string=data.get("key_as_string"),
            children=parse_agg_results(data, skip=BUCKET_PROPERTIES),
        )


def to_agg_result(value: Dict[str, Any]) -> AggResult:
    """Classify one aggregation result object."""
    buckets = value.get("buckets")
    if isinstance(buckets, list):
        return NestedBuckets(buckets=[ResponseBucket.from_dict(b) for b in buckets])
    if isinstance(buckets, dict):
        return NestedBuckets(
            buckets=[ResponseBucket.from_dict(b, key=k) for k, b in buckets.items()],
            keyed=True,
        )
    return MetricResult(raw=value)


def parse_agg_results(data: Dict[str, Any], skip: frozenset = frozenset()) -> Dict[str, AggResult]:
    """Convert every object-valued entry of ``data`` into an AggResult."""
    return {
        name: to_agg_result(value)
        for name, value in data.items()
        if name not in skip and isinstance(value, dict)
    }


@dataclass
class SearchResponse:
    """One entry of the multi-search ``responses`` array."""
    hits: List[Dict[str, Any]] = field(default_factory=list)
    aggregations: Optional[Dict[str, AggResult]] = None
    error: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SearchResponse":
        """Create from a response entry dict."""
        if not isinstance(data, dict):
            raise MalformedResponse(f"response entry is not an object: {type(data).__name__}")

        hits_data = data.get("hits") or {}

        aggregations = data.get("aggregations")
        error = data.get("error")
        if error is not None and not isinstance(error, dict):
            error = {"reason": str(error)}

        return cls(
            hits=list(hits_data.get("hits") or []),
            aggregations=parse_agg_results(aggregations) if isinstance(aggregations, dict) else None,
            error=error,
        )

    @property
    def error_reason(self) -> Optional[str]:
        """Human-readable reason of a backend error, if any."""
        if not self.error:
            return None
        root_cause = self.error.get("root_cause") or []
        if root_cause and isinstance(root_cause[0], dict) and root_cause[0].get("reason"):
            return root_cause[0]["reason"]
        return self.error.get("reason") or "unknown backend error"


@dataclass
class MultiSearchResponse:
    """The full multi-search response."""
    responses: List[Dict[str, Any]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "MultiSearchResponse":
        """
        Create from the decoded multi-search response.

        Entries are kept raw so one malformed entry fails only its own query.

        Raises:
            MalformedResponse: If there is no ``responses`` array
        """
        if not isinstance(data, dict) or not isinstance(data.get("responses"), list):
            raise MalformedResponse("multi-search response has no 'responses' array")
        return cls(responses=list(data["responses"]))
