"""
Unit tests for frame types and response views.
"""

import pytest

from elastic_frames.errors import InvalidQuery, MalformedResponse
from elastic_frames.frame_types.frames import (
    DataResponse,
    Field,
    FieldType,
    Frame,
    QueryDataResponse,
    millis_to_datetime,
)
from elastic_frames.frame_types.response import (
    MetricResult,
    MultiSearchResponse,
    NestedBuckets,
    SearchResponse,
    to_agg_result,
)


class TestFrame:
    """Test cases for frames and fields."""

    def test_row_len_requires_equal_fields(self):
        frame = Frame(name="x", ref_id="A", fields=[
            Field(name="a", type=FieldType.NUMBER, values=[1, 2]),
            Field(name="b", type=FieldType.NUMBER, values=[1]),
        ])

        with pytest.raises(ValueError, match="unequal length"):
            frame.row_len()

    def test_to_dict(self):
        frame = Frame(
            name="Count",
            ref_id="A",
            fields=[
                Field(name="Time", type=FieldType.TIME, values=[millis_to_datetime(1000), None]),
                Field(
                    name="Value",
                    type=FieldType.NUMBER,
                    values=[1.0, None],
                    labels={"host": "a"},
                    display_name="a",
                ),
            ],
        )

        assert frame.to_dict() == {
            "name": "Count",
            "refId": "A",
            "fields": [
                {"name": "Time", "type": "time", "values": ["1970-01-01T00:00:01.000Z", None]},
                {
                    "name": "Value",
                    "type": "number",
                    "values": [1.0, None],
                    "labels": {"host": "a"},
                    "config": {"displayNameFromDS": "a"},
                },
            ],
        }

    def test_field_lookup(self):
        frame = Frame(name="x", ref_id="A", fields=[
            Field(name="Time", type=FieldType.TIME),
            Field(name="Value", type=FieldType.NUMBER),
        ])

        assert frame.field_by_name("Value").type == FieldType.NUMBER
        assert frame.field_by_type(FieldType.TIME).name == "Time"
        assert frame.field_by_name("missing") is None

    def test_query_data_response(self):
        response = QueryDataResponse(responses={
            "A": DataResponse(frames=[Frame(name="x", ref_id="A")]),
            "B": DataResponse(error=InvalidQuery("bad", "B")),
        })

        data = response.to_dict()

        assert len(response) == 2
        assert list(data) == ["A", "B"]
        assert data["B"] == {"frames": [], "error": "bad", "errorType": "InvalidQuery"}
        assert data["A"]["error"] is None


class TestResponseViews:
    """Test cases for typed response views."""

    def test_agg_result_variants(self):
        assert isinstance(to_agg_result({"value": 3}), MetricResult)

        nested = to_agg_result({"buckets": [{"key": "a", "doc_count": 2, "1": {"value": 5}}]})

        assert isinstance(nested, NestedBuckets)
        assert nested.buckets[0].doc_count == 2
        assert nested.buckets[0].children["1"].value == 5

    def test_keyed_buckets(self):
        nested = to_agg_result({"buckets": {"x": {"doc_count": 1}}})

        assert nested.keyed
        assert nested.buckets[0].key == "x"

    def test_search_response(self):
        entry = SearchResponse.from_dict({
            "took": 4,
            "hits": {"total": {"value": 12}, "hits": [{"_id": "1"}]},
            "aggregations": {"2": {"buckets": []}},
        })

        assert entry.hits == [{"_id": "1"}]
        assert isinstance(entry.aggregations["2"], NestedBuckets)
        assert entry.error_reason is None

    def test_error_reason(self):
        entry = SearchResponse.from_dict({
            "error": {"root_cause": [{"reason": "no such index"}], "reason": "all shards failed"},
            "status": 404,
        })

        assert entry.error_reason == "no such index"
        assert SearchResponse.from_dict({"error": "boom"}).error_reason == "boom"

    def test_multisearch_response_requires_responses(self):
        with pytest.raises(MalformedResponse):
            MultiSearchResponse.from_dict({"took": 1})

        assert MultiSearchResponse.from_dict({"responses": [{}], "took": 2}).responses == [{}]
