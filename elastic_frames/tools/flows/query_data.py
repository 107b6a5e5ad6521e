"""
Query-data flow: compile a batch of logical queries, run them as one
multi-search and turn every response entry into frames.

Errors are scoped to the query that caused them. A query that fails to
compile is left out of the multi-search; a response entry that fails to
parse does not affect its siblings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from elasticsearch import Elasticsearch

from elastic_frames.config.environments import DatasourceSettings, get_datasource_settings
from elastic_frames.errors import (
    BackendError,
    InvalidQuery,
    MalformedResponse,
    QueryError,
    TransportFailure,
)
from elastic_frames.frame_types.frames import DataResponse, Frame, QueryDataResponse
from elastic_frames.frame_types.query import LogicalQuery, TimeRange, load_query_models
from elastic_frames.frame_types.response import MultiSearchResponse, SearchResponse
from elastic_frames.tools.primitives.aggregation_builder import SearchRequest, build_search_request
from elastic_frames.tools.primitives.frame_assembler import assemble_frames
from elastic_frames.tools.primitives.hit_projector import project_hits
from elastic_frames.tools.primitives.multisearch import (
    decode_multisearch_response,
    execute_multisearch,
    serialize_multisearch,
)
from elastic_frames.tools.primitives.response_walker import walk_response


logger = logging.getLogger(__name__)

RawQueries = Union[bytes, str, List[Dict[str, Any]]]


@dataclass
class CompiledBatch:
    """Compiled requests aligned with their queries, plus the result being built."""
    queries: List[LogicalQuery] = field(default_factory=list)
    requests: List[SearchRequest] = field(default_factory=list)
    response: QueryDataResponse = field(default_factory=QueryDataResponse)
    duplicates: List[QueryError] = field(default_factory=list)

    @property
    def payload(self) -> bytes:
        return serialize_multisearch(self.requests)


def _record_error(response: QueryDataResponse, error: QueryError) -> None:
    response.responses[error.ref_id] = DataResponse(error=error)


def compile_queries(
    raw_queries: RawQueries,
    time_range: Optional[Union[TimeRange, Dict[str, Any]]] = None,
    settings: Optional[DatasourceSettings] = None,
) -> CompiledBatch:
    """
    Compile a batch of JSON queries.

    Args:
        raw_queries: JSON query model list (bytes, str or parsed)
        time_range: Batch time range, TimeRange or {"from", "to"}
        settings: Datasource settings (from configuration if omitted)

    Returns:
        CompiledBatch; queries that failed to compile already carry their error

    Raises:
        InvalidQuery: If the payload as a whole is not a list of query objects
    """
    settings = settings or get_datasource_settings()
    if isinstance(time_range, dict):
        time_range = TimeRange.from_dict(time_range)

    batch = CompiledBatch()
    for model in load_query_models(raw_queries):
        ref_id = str(model.get("refId") or "A")

        if ref_id in batch.response.responses:
            logger.warning("Duplicate ref-id %s; only the first query is run", ref_id)
            batch.duplicates.append(InvalidQuery(f"duplicate ref-id {ref_id!r} in batch", ref_id))
            continue

        try:
            query = LogicalQuery.from_dict(model, time_range, settings.time_field)
            request = build_search_request(query, settings)
        except QueryError as e:
            logger.warning("Query %s failed to compile: %s", ref_id, e.message)
            _record_error(batch.response, e.with_ref_id(ref_id))
            continue
        except (TypeError, ValueError, KeyError, AttributeError, OverflowError) as e:
            logger.warning("Query %s is malformed: %s", ref_id, e)
            _record_error(batch.response, InvalidQuery(f"malformed query: {e}", ref_id))
            continue

        batch.queries.append(query)
        batch.requests.append(request)
        batch.response.responses[ref_id] = DataResponse()

    return batch


def parse_search_response(entry: Dict[str, Any], query: LogicalQuery) -> List[Frame]:
    """
    Convert one multi-search response entry into frames.

    Args:
        entry: Raw response entry
        query: The query the entry answers

    Returns:
        Frames tagged with the query's ref-id

    Raises:
        BackendError: If the entry carries an error
        MalformedResponse: If the entry does not match the query's shape
    """
    try:
        response = SearchResponse.from_dict(entry)
        if response.error is not None:
            raise BackendError(response.error_reason, query.ref_id)
        if query.is_raw:
            return [project_hits(response.hits, query)]
        return assemble_frames(walk_response(response.aggregations, query))
    except QueryError as e:
        raise e.with_ref_id(query.ref_id)
    except (TypeError, ValueError, KeyError, AttributeError, OverflowError) as e:
        raise MalformedResponse(f"unexpected response shape: {e}", query.ref_id) from e


def parse_multisearch_response(
    raw_response: Union[bytes, str, Dict[str, Any]],
    batch: CompiledBatch,
) -> QueryDataResponse:
    """
    Attach frames (or errors) for every compiled query of the batch.

    Response entries are matched to queries by position.

    Args:
        raw_response: Multi-search response (bytes, str or decoded)
        batch: The batch the response answers

    Returns:
        The batch's QueryDataResponse
    """
    try:
        responses = MultiSearchResponse.from_dict(decode_multisearch_response(raw_response)).responses
    except MalformedResponse as e:
        logger.warning("Unusable multi-search response: %s", e.message)
        for query in batch.queries:
            _record_error(batch.response, MalformedResponse(e.message, query.ref_id))
        return batch.response

    if len(responses) > len(batch.queries):
        logger.warning("Multi-search returned %d entries for %d queries", len(responses), len(batch.queries))

    for index, query in enumerate(batch.queries):
        if index >= len(responses):
            _record_error(batch.response, MalformedResponse("no response entry for query", query.ref_id))
            continue
        try:
            frames = parse_search_response(responses[index], query)
        except QueryError as e:
            logger.warning("Query %s failed to parse: %s", query.ref_id, e.message)
            _record_error(batch.response, e)
            continue
        batch.response.responses[query.ref_id] = DataResponse(frames=frames)

    for duplicate in batch.duplicates:
        entry = batch.response.responses[duplicate.ref_id]
        if entry.error is None:
            entry.error = duplicate

    return batch.response


def query_data(
    raw_queries: RawQueries,
    time_range: Optional[Union[TimeRange, Dict[str, Any]]] = None,
    client: Optional[Elasticsearch] = None,
    settings: Optional[DatasourceSettings] = None,
) -> QueryDataResponse:
    """
    Compile, execute and parse a batch of queries.

    Args:
        raw_queries: JSON query model list (bytes, str or parsed)
        time_range: Batch time range, TimeRange or {"from", "to"}
        client: Elasticsearch client (a configured one is created if omitted)
        settings: Datasource settings (from configuration if omitted)

    Returns:
        QueryDataResponse keyed by ref-id, in submission order
    """
    batch = compile_queries(raw_queries, time_range, settings)
    if not batch.requests:
        return batch.response

    try:
        raw_response = execute_multisearch(batch.payload, client)
    except TransportFailure as e:
        for query in batch.queries:
            _record_error(batch.response, TransportFailure(e.message, query.ref_id))
        return batch.response

    return parse_multisearch_response(raw_response, batch)
