"""
Query DSL fragment builders for Elasticsearch.
"""

from typing import Dict, Any, List, Optional


def build_time_range_query(
    field: str,
    start_ms: int,
    end_ms: int,
) -> Dict[str, Any]:
    """
    Build a time range filter on epoch milliseconds.

    Args:
        field: Timestamp field name
        start_ms: Start of the range (inclusive)
        end_ms: End of the range (inclusive)

    Returns:
        Range query dict
    """
    return {
        "range": {
            field: {
                "gte": start_ms,
                "lte": end_ms,
                "format": "epoch_millis",
            }
        }
    }


def build_query_string_query(
    query: str,
    analyze_wildcard: bool = True,
) -> Dict[str, Any]:
    """
    Build a Lucene query_string query.

    Args:
        query: Lucene query text
        analyze_wildcard: Whether wildcard terms are analyzed

    Returns:
        Query string dict
    """
    return {"query_string": {"analyze_wildcard": analyze_wildcard, "query": query}}


def build_bool_query(filters: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Build a bool query whose clauses all run in filter context.

    Args:
        filters: Filter context queries (no scoring)

    Returns:
        Bool query dict
    """
    return {"bool": {"filter": filters}}


def build_sort_desc(
    field: str,
    unmapped_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Build a descending sort clause.

    Args:
        field: Field to sort on
        unmapped_type: Type to assume for indices where the field is unmapped

    Returns:
        Sort clause dict
    """
    order: Dict[str, Any] = {"order": "desc"}
    if unmapped_type:
        order["unmapped_type"] = unmapped_type
    return {field: order}
