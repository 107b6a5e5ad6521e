"""
Flow tools combining the primitives end to end.
"""

from .query_data import compile_queries, parse_multisearch_response, query_data

__all__ = [
    "compile_queries",
    "parse_multisearch_response",
    "query_data",
]
