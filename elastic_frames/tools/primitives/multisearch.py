"""
Multi-search serialization and execution.
"""

import json
import logging
from typing import Any, Dict, Iterable, Optional, Union

from elasticsearch import Elasticsearch

from elastic_frames.errors import MalformedResponse, TransportFailure
from elastic_frames.tools.primitives.aggregation_builder import SearchRequest
from elastic_frames.utils.connection import get_elasticsearch_client


logger = logging.getLogger(__name__)


def _encode_line(data: Dict[str, Any]) -> bytes:
    # json.dumps escapes newlines inside strings, so each object is one line
    return json.dumps(data, separators=(",", ":"), ensure_ascii=False).encode("utf-8") + b"\n"


def serialize_multisearch(requests: Iterable[SearchRequest]) -> bytes:
    """
    Build the newline-delimited multi-search payload.

    Two lines per request, header then body, in input order. Responses come
    back in the same order, which is how they are matched to queries.

    Args:
        requests: Compiled search requests

    Returns:
        UTF-8 payload ending with a newline
    """
    payload = bytearray()
    for request in requests:
        payload += _encode_line(request.header)
        payload += _encode_line(request.body)
    return bytes(payload)


def decode_multisearch_response(raw: Union[bytes, str, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Decode a raw multi-search response.

    Raises:
        MalformedResponse: If the payload is not a JSON object
    """
    if isinstance(raw, (bytes, str)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise MalformedResponse(f"multi-search response is not valid JSON: {e}") from e
    if not isinstance(raw, dict):
        raise MalformedResponse("multi-search response is not a JSON object")
    return raw


def execute_multisearch(
    payload: bytes,
    client: Optional[Elasticsearch] = None,
) -> Dict[str, Any]:
    """
    Send a multi-search payload.

    Each header line names its own index, so no default index is passed.

    Args:
        payload: Output of serialize_multisearch
        client: Elasticsearch client (a configured one is created if omitted)

    Returns:
        Decoded multi-search response

    Raises:
        TransportFailure: If the request fails
    """
    es = client or get_elasticsearch_client()

    try:
        response = es.msearch(body=payload)
    except Exception as e:
        logger.error("Multi-search failed: %s", e)
        raise TransportFailure(f"Multi-search failed: {str(e)}") from e

    return decode_multisearch_response(getattr(response, "body", response))
