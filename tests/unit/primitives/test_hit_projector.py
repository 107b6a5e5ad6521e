"""
Unit tests for the raw hit projector.
"""

from datetime import datetime, timezone

import pytest

from elastic_frames.frame_types.frames import FieldType
from elastic_frames.tools.primitives.hit_projector import column_order, infer_field_type, project_hits


@pytest.fixture
def raw_query(make_query):
    return make_query({
        "refId": "A",
        "timeField": "@timestamp",
        "metrics": [{"type": "raw_data", "id": "1"}],
    })


class TestProjectHits:
    """Test cases for raw_data / raw_document projection."""

    def test_one_frame_one_row_per_hit(self, raw_query):
        hits = [
            {
                "_id": "1",
                "_index": "logs-2022.11.14",
                "_source": {"@timestamp": "2022-11-14T00:00:05.000Z", "host": {"name": "a"}, "bytes": 10},
            },
            {
                "_id": "2",
                "_index": "logs-2022.11.14",
                "_source": {"@timestamp": "2022-11-14T00:00:01.000Z", "level": "error"},
            },
        ]

        frame = project_hits(hits, raw_query)

        assert frame.ref_id == "A"
        assert frame.name == "Raw Data"
        assert frame.meta == {"preferredVisualisationType": "table"}
        assert frame.row_len() == 2
        assert [f.name for f in frame.fields] == [
            "@timestamp", "_id", "_index", "bytes", "host.name", "level",
        ]
        assert frame.field_by_name("host.name").values == ["a", None]
        assert frame.field_by_name("level").values == [None, "error"]
        assert frame.field_by_name("bytes").type == FieldType.NUMBER

    def test_time_field_parsed(self, raw_query):
        hits = [
            {"_id": "1", "_source": {"@timestamp": "2022-11-14T00:00:05.000Z"}},
            {"_id": "2", "fields": {"@timestamp": [1668384001000]}},
        ]

        time_field = project_hits(hits, raw_query).fields[0]

        assert time_field.type == FieldType.TIME
        assert time_field.values == [
            datetime(2022, 11, 14, 0, 0, 5, tzinfo=timezone.utc),
            datetime(2022, 11, 14, 0, 0, 1, tzinfo=timezone.utc),
        ]

    def test_unparseable_time_kept_raw(self, raw_query):
        hits = [{"_source": {"@timestamp": "yesterday"}}]

        time_field = project_hits(hits, raw_query).fields[0]

        assert time_field.type == FieldType.STRING
        assert time_field.values == ["yesterday"]

    def test_fields_override_source(self, raw_query):
        hits = [{"_source": {"a": 1}, "fields": {"a": [2]}}]

        assert project_hits(hits, raw_query).field_by_name("a").values == [2]

    def test_no_hits(self, make_query):
        query = make_query({"refId": "B", "metrics": [{"type": "raw_document", "id": "1"}]})

        frame = project_hits([], query)

        assert frame.name == "Raw Document"
        assert frame.fields == []
        assert frame.row_len() == 0


class TestInferFieldType:
    """Test cases for column type inference."""

    @pytest.mark.parametrize("values,expected", [
        ([1, 2.5, None], FieldType.NUMBER),
        (["a", None], FieldType.STRING),
        ([True, False], FieldType.BOOLEAN),
        ([1, "a"], FieldType.OTHER),
        ([None, None], FieldType.OTHER),
        ([["a", "b"]], FieldType.OTHER),
    ])
    def test_infer(self, values, expected):
        assert infer_field_type(values) == expected

    def test_column_order(self):
        assert column_order(["b", "ts", "a"], "ts") == ["ts", "a", "b"]
        assert column_order(["b", "a"], "ts") == ["a", "b"]
