"""
Pytest configuration and fixtures for elastic-frames tests.
"""

import json
from pathlib import Path
from typing import Any, Dict, List
from unittest.mock import Mock, patch

import pytest

from elastic_frames.config.environments import DatasourceSettings
from elastic_frames.frame_types.query import LogicalQuery, TimeRange


TESTDATA = Path(__file__).parent / "testdata"

# 2022-11-14T00:00:00Z .. 2022-11-14T01:00:00Z
RANGE_FROM_MS = 1668384000000
RANGE_TO_MS = 1668387600000


@pytest.fixture
def time_range() -> TimeRange:
    """One hour on 2022-11-14."""
    return TimeRange.from_dict({"from": RANGE_FROM_MS, "to": RANGE_TO_MS})


@pytest.fixture
def datasource_settings() -> DatasourceSettings:
    """Datasource with a daily index pattern."""
    return DatasourceSettings(
        index="[testdb-]YYYY.MM.DD",
        index_interval="Daily",
        time_field="@timestamp",
        max_concurrent_shard_requests=0,
        default_raw_size=500,
        time_interval="10s",
    )


@pytest.fixture
def make_query(time_range):
    """Build a LogicalQuery from a JSON query model dict."""
    def _make(model: Dict[str, Any]) -> LogicalQuery:
        return LogicalQuery.from_dict(model, time_range, "@timestamp")
    return _make


@pytest.fixture
def load_testdata():
    """Read a JSON file from tests/testdata."""
    def _load(name: str) -> Any:
        return json.loads((TESTDATA / name).read_text(encoding="utf-8"))
    return _load


@pytest.fixture
def mock_elasticsearch():
    """Mock Elasticsearch client for testing."""
    mock_es = Mock()

    mock_es.msearch.return_value = {"took": 1, "responses": []}

    mock_es.search.return_value = {
        "took": 5,
        "timed_out": False,
        "hits": {"total": {"value": 0}, "hits": []},
    }

    return mock_es


@pytest.fixture
def mock_es_client(mock_elasticsearch):
    """Patch client creation so nothing talks to a real cluster."""
    with patch(
        "elastic_frames.tools.primitives.multisearch.get_elasticsearch_client",
        return_value=mock_elasticsearch,
    ), patch(
        "elastic_frames.utils.connection.get_elasticsearch_client",
        return_value=mock_elasticsearch,
    ):
        yield mock_elasticsearch


@pytest.fixture
def patch_datasource(datasource_settings):
    """Patch configured datasource settings for code that reads config."""
    with patch(
        "elastic_frames.tools.flows.query_data.get_datasource_settings",
        return_value=datasource_settings,
    ), patch(
        "elastic_frames.tools.primitives.aggregation_builder.get_datasource_settings",
        return_value=datasource_settings,
    ):
        yield datasource_settings


@pytest.fixture
def msearch_lines():
    """Decode a multi-search payload into its JSON lines."""
    def _decode(payload: bytes) -> List[Dict[str, Any]]:
        return [json.loads(line) for line in payload.decode("utf-8").strip().split("\n")]
    return _decode
