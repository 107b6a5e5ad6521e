"""
Unit tests for multi-search serialization and execution.
"""

import json
from unittest.mock import Mock

import pytest

from elastic_frames.errors import MalformedResponse, TransportFailure
from elastic_frames.tools.primitives.aggregation_builder import SearchRequest
from elastic_frames.tools.primitives.multisearch import (
    decode_multisearch_response,
    execute_multisearch,
    serialize_multisearch,
)


def _request(ref_id, index="logs", body=None):
    return SearchRequest(
        ref_id=ref_id,
        header={"search_type": "query_then_fetch", "ignore_unavailable": True, "index": index},
        body=body or {"size": 0},
    )


class TestSerializeMultisearch:
    """Test cases for the newline-delimited payload."""

    def test_two_lines_per_request_in_order(self, msearch_lines):
        payload = serialize_multisearch([_request("A", "a"), _request("B", "b")])

        lines = msearch_lines(payload)

        assert len(lines) == 4
        assert lines[0]["index"] == "a"
        assert lines[2]["index"] == "b"
        assert lines[1] == {"size": 0}

    def test_payload_ends_with_newline(self):
        payload = serialize_multisearch([_request("A")])

        assert payload.endswith(b"\n")
        assert payload.count(b"\n") == 2

    def test_compact_utf8_encoding(self):
        """Non-ASCII text is kept as UTF-8 and newlines in strings are escaped."""
        body = {"query": {"query_string": {"query": "name:\"café\"\nAND x"}}}
        payload = serialize_multisearch([_request("A", body=body)])

        lines = payload.split(b"\n")

        assert lines[1] == json.dumps(body, separators=(",", ":"), ensure_ascii=False).encode("utf-8")
        assert "café".encode("utf-8") in payload
        assert b" " not in lines[0]

    def test_empty_batch(self):
        assert serialize_multisearch([]) == b""


class TestDecodeMultisearchResponse:
    """Test cases for decoding raw responses."""

    def test_bytes_and_dict(self):
        raw = {"responses": []}

        assert decode_multisearch_response(json.dumps(raw).encode()) == raw
        assert decode_multisearch_response(raw) is raw

    def test_invalid_json(self):
        with pytest.raises(MalformedResponse, match="not valid JSON"):
            decode_multisearch_response(b"{not json")

    def test_not_an_object(self):
        with pytest.raises(MalformedResponse, match="not a JSON object"):
            decode_multisearch_response("[1, 2]")


class TestExecuteMultisearch:
    """Test cases for sending the payload."""

    def test_sends_payload(self, mock_elasticsearch):
        mock_elasticsearch.msearch.return_value = {"took": 3, "responses": [{"hits": {}}]}

        result = execute_multisearch(b"{}\n{}\n", client=mock_elasticsearch)

        mock_elasticsearch.msearch.assert_called_once_with(body=b"{}\n{}\n")
        assert result["took"] == 3

    def test_unwraps_api_response_body(self, mock_elasticsearch):
        """Client responses expose the decoded JSON through ``body``."""
        mock_elasticsearch.msearch.return_value = Mock(body={"responses": []})

        assert execute_multisearch(b"", client=mock_elasticsearch) == {"responses": []}

    def test_uses_configured_client(self, mock_es_client):
        execute_multisearch(b"{}\n{}\n")

        mock_es_client.msearch.assert_called_once()

    def test_transport_failure(self, mock_elasticsearch):
        mock_elasticsearch.msearch.side_effect = ConnectionError("connection refused")

        with pytest.raises(TransportFailure) as exc_info:
            execute_multisearch(b"{}\n{}\n", client=mock_elasticsearch)

        assert "connection refused" in exc_info.value.message
        assert exc_info.value.ref_id is None
