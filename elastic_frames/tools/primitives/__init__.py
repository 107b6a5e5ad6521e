"""
Primitive operations: compile requests, serialize them, shape responses.
"""

from .aggregation_builder import AggregationNode, SearchRequest, build_search_request
from .multisearch import serialize_multisearch, execute_multisearch
from .response_walker import WalkResult, walk_response
from .frame_assembler import assemble_frames
from .hit_projector import project_hits

__all__ = [
    # Compilation
    "AggregationNode",
    "SearchRequest",
    "build_search_request",
    # Multi-search
    "serialize_multisearch",
    "execute_multisearch",
    # Parsing
    "WalkResult",
    "walk_response",
    "assemble_frames",
    "project_hits",
]
