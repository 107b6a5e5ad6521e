"""
Integration tests for the query-data flow: compile, multi-search, frames.
"""

import json

import pytest

from elastic_frames.errors import BackendError, InvalidQuery, MalformedResponse, TransportFailure
from elastic_frames.frame_types.frames import FieldType
from elastic_frames.tools.flows.query_data import compile_queries, parse_multisearch_response, query_data

from conftest import RANGE_FROM_MS, RANGE_TO_MS


TIME_RANGE = {"from": RANGE_FROM_MS, "to": RANGE_TO_MS}

COUNT_QUERY = {
    "refId": "A",
    "timeField": "@timestamp",
    "metrics": [{"type": "count", "id": "1"}],
    "bucketAggs": [{"type": "date_histogram", "field": "@timestamp", "id": "2"}],
}


def _histogram_entry(agg_id, buckets):
    return {"status": 200, "aggregations": {agg_id: {"buckets": buckets}}}


class TestCompileQueries:
    """Test cases for compiling a batch."""

    def test_request_snapshot(self, datasource_settings, load_testdata, msearch_lines):
        batch = compile_queries([COUNT_QUERY], TIME_RANGE, datasource_settings)

        assert msearch_lines(batch.payload) == load_testdata("count_date_histogram_request.json")
        assert batch.payload.endswith(b"\n")

    def test_accepts_json_bytes(self, datasource_settings):
        batch = compile_queries(json.dumps([COUNT_QUERY]).encode("utf-8"), TIME_RANGE, datasource_settings)

        assert [r.ref_id for r in batch.requests] == ["A"]

    def test_compile_error_excluded_from_payload(self, datasource_settings, msearch_lines):
        bad = {"refId": "B", "metrics": [{"type": "count", "id": "1"}], "bucketAggs": [{"type": "terms", "id": "2"}]}
        other = dict(COUNT_QUERY, refId="C")

        batch = compile_queries([COUNT_QUERY, bad, other], TIME_RANGE, datasource_settings)

        assert [r.ref_id for r in batch.requests] == ["A", "C"]
        assert len(msearch_lines(batch.payload)) == 4
        assert list(batch.response.responses) == ["A", "B", "C"]
        assert isinstance(batch.response["B"].error, InvalidQuery)
        assert batch.response["B"].error.ref_id == "B"

    @pytest.mark.parametrize("malformed", [
        {"intervalMs": "abc"},
        {"metrics": ["count"]},
        {"metrics": [{"type": "count", "id": "1", "settings": "oops"}]},
        {"metrics": [
            {"type": "derivative", "field": "3", "id": "1"},
            {"type": "percentiles", "field": "latency", "id": "3", "settings": {"percents": ["abc"]}},
        ]},
        {"query": 42},
    ])
    def test_malformed_query_fails_alone(self, datasource_settings, msearch_lines, malformed):
        bad = dict(COUNT_QUERY, refId="B", **malformed)

        batch = compile_queries([COUNT_QUERY, bad], TIME_RANGE, datasource_settings)

        assert [r.ref_id for r in batch.requests] == ["A"]
        assert len(msearch_lines(batch.payload)) == 2
        assert batch.response["A"].error is None
        assert isinstance(batch.response["B"].error, InvalidQuery)
        assert batch.response["B"].error.ref_id == "B"

    def test_duplicate_ref_id_runs_first_only(self, datasource_settings):
        batch = compile_queries([COUNT_QUERY, dict(COUNT_QUERY)], TIME_RANGE, datasource_settings)

        assert len(batch.requests) == 1
        assert batch.duplicates[0].ref_id == "A"

    def test_uses_configured_settings(self, patch_datasource, msearch_lines):
        batch = compile_queries([COUNT_QUERY], TIME_RANGE)

        assert msearch_lines(batch.payload)[0]["index"] == "testdb-2022.11.14"

    def test_whole_payload_invalid(self, datasource_settings):
        with pytest.raises(InvalidQuery):
            compile_queries(b"not json", TIME_RANGE, datasource_settings)


class TestParseMultisearchResponse:
    """Test cases for matching response entries to queries."""

    def test_ref_id_matching(self, datasource_settings, load_testdata):
        batch = compile_queries(load_testdata("multi_query_batch.json"), TIME_RANGE, datasource_settings)

        result = parse_multisearch_response(load_testdata("multi_query_response.json"), batch)

        assert list(result.responses) == ["A", "B", "C", "D", "E", "F"]
        assert [len(result[ref_id].frames) for ref_id in "ABCDEF"] == [1, 1, 1, 2, 4, 1]
        for ref_id in "ABCDEF":
            assert result[ref_id].error is None
            assert all(frame.ref_id == ref_id for frame in result[ref_id].frames)

    def test_frame_contents(self, datasource_settings, load_testdata):
        batch = compile_queries(load_testdata("multi_query_batch.json"), TIME_RANGE, datasource_settings)

        result = parse_multisearch_response(load_testdata("multi_query_response.json"), batch)

        count = result["A"].frames[0]
        assert count.fields[1].values == [10.0, 15.0]

        histogram = result["B"].frames[0]
        assert histogram.fields[0].values == [1000.0, 2000.0, 3000.0]

        raw_document = result["C"].frames[0]
        assert raw_document.row_len() == 2
        assert raw_document.fields[0].name == "@timestamp"
        assert raw_document.fields[0].type == FieldType.TIME

        assert [f.name for f in result["D"].frames] == ["p75 latency", "p90 latency"]
        assert [f.name for f in result["E"].frames] == [
            "server1 Max value",
            "server1 Std Dev Upper value",
            "server2 Max value",
            "server2 Std Dev Upper value",
        ]
        assert result["E"].frames[2].fields[1].values == [15.5]

        raw_data = result["F"].frames[0]
        assert raw_data.field_by_name("level").values == ["error"]

    def test_batch_isolation(self, datasource_settings):
        """One malformed entry fails only its own query."""
        queries = [COUNT_QUERY, dict(COUNT_QUERY, refId="B"), dict(COUNT_QUERY, refId="C")]
        batch = compile_queries(queries, TIME_RANGE, datasource_settings)
        response = {
            "responses": [
                _histogram_entry("2", [{"key": 1000, "doc_count": 1}]),
                {"status": 200, "aggregations": {"wrong": {"buckets": []}}},
                _histogram_entry("2", [{"key": 1000, "doc_count": 3}]),
            ]
        }

        result = parse_multisearch_response(response, batch)

        assert result["A"].frames[0].fields[1].values == [1.0]
        assert isinstance(result["B"].error, MalformedResponse)
        assert result["B"].frames == []
        assert result["C"].frames[0].fields[1].values == [3.0]

    def test_backend_error_entry(self, datasource_settings):
        batch = compile_queries([COUNT_QUERY, dict(COUNT_QUERY, refId="B")], TIME_RANGE, datasource_settings)
        response = {
            "responses": [
                {"error": {"root_cause": [{"reason": "no such index [testdb-2022.11.14]"}]}, "status": 404},
                _histogram_entry("2", []),
            ]
        }

        result = parse_multisearch_response(response, batch)

        assert isinstance(result["A"].error, BackendError)
        assert result["A"].error.message == "no such index [testdb-2022.11.14]"
        assert result["B"].error is None
        assert len(result["B"].frames) == 1

    def test_missing_entries(self, datasource_settings):
        batch = compile_queries([COUNT_QUERY, dict(COUNT_QUERY, refId="B")], TIME_RANGE, datasource_settings)

        result = parse_multisearch_response({"responses": [_histogram_entry("2", [])]}, batch)

        assert result["A"].error is None
        assert isinstance(result["B"].error, MalformedResponse)

    def test_unusable_response(self, datasource_settings):
        batch = compile_queries([COUNT_QUERY, dict(COUNT_QUERY, refId="B")], TIME_RANGE, datasource_settings)

        result = parse_multisearch_response(b"<html>bad gateway</html>", batch)

        assert isinstance(result["A"].error, MalformedResponse)
        assert result["B"].error.ref_id == "B"

    def test_duplicate_error_attached(self, datasource_settings):
        batch = compile_queries([COUNT_QUERY, dict(COUNT_QUERY)], TIME_RANGE, datasource_settings)

        result = parse_multisearch_response({"responses": [_histogram_entry("2", [])]}, batch)

        assert len(result["A"].frames) == 1
        assert "duplicate ref-id" in result["A"].error.message


class TestQueryData:
    """Test cases for the end-to-end flow against a mocked client."""

    def test_simple_count(self, mock_elasticsearch, datasource_settings):
        mock_elasticsearch.msearch.return_value = {
            "responses": [
                _histogram_entry("2", [{"key": 1000, "doc_count": 10}, {"key": 2000, "doc_count": 15}]),
            ]
        }

        result = query_data([COUNT_QUERY], TIME_RANGE, client=mock_elasticsearch, settings=datasource_settings)

        frames = result["A"].frames
        assert len(frames) == 1
        assert frames[0].row_len() == 2
        assert frames[0].fields[1].values == [10.0, 15.0]
        payload = mock_elasticsearch.msearch.call_args.kwargs["body"]
        assert payload.count(b"\n") == 2

    def test_count_and_avg(self, mock_es_client, patch_datasource):
        mock_es_client.msearch.return_value = {
            "responses": [
                _histogram_entry("3", [
                    {"key": 1000, "doc_count": 10, "2": {"value": 88}},
                    {"key": 2000, "doc_count": 15, "2": {"value": 99}},
                ]),
            ]
        }
        query = {
            "refId": "A",
            "metrics": [{"type": "count", "id": "1"}, {"type": "avg", "field": "value", "id": "2"}],
            "bucketAggs": [{"type": "date_histogram", "id": "3"}],
        }

        result = query_data([query], TIME_RANGE)

        frames = result["A"].frames
        assert len(frames) == 2
        assert frames[1].fields[1].values == [88.0, 99.0]

    def test_transport_failure_attached_to_every_query(self, mock_elasticsearch, datasource_settings):
        mock_elasticsearch.msearch.side_effect = ConnectionError("connection refused")
        bad = {"refId": "C", "metrics": [{"type": "avg", "id": "1"}], "bucketAggs": [{"type": "date_histogram", "id": "2"}]}

        result = query_data(
            [COUNT_QUERY, dict(COUNT_QUERY, refId="B"), bad],
            TIME_RANGE,
            client=mock_elasticsearch,
            settings=datasource_settings,
        )

        assert isinstance(result["A"].error, TransportFailure)
        assert isinstance(result["B"].error, TransportFailure)
        assert result["B"].error.ref_id == "B"
        assert isinstance(result["C"].error, InvalidQuery)

    def test_nothing_to_send(self, mock_elasticsearch, datasource_settings):
        bad = {"refId": "A", "metrics": [{"type": "count", "id": "1"}]}

        result = query_data([bad], TIME_RANGE, client=mock_elasticsearch, settings=datasource_settings)

        mock_elasticsearch.msearch.assert_not_called()
        assert isinstance(result["A"].error, InvalidQuery)

    def test_to_dict(self, mock_elasticsearch, datasource_settings):
        mock_elasticsearch.msearch.return_value = {"responses": [_histogram_entry("2", [{"key": 1000, "doc_count": 1}])]}

        data = query_data([COUNT_QUERY], TIME_RANGE, client=mock_elasticsearch, settings=datasource_settings).to_dict()

        assert data["A"]["error"] is None
        assert data["A"]["frames"][0]["fields"][0]["values"] == ["1970-01-01T00:00:01.000Z"]
