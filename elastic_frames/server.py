"""
FastMCP server exposing elastic-frames.

Tools:
- health: Check Elasticsearch connectivity and datasource configuration
- build_multisearch_request: Compile queries to the multi-search payload without running them
- query_frames: Compile, run and shape queries into frames
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastmcp import FastMCP

from elastic_frames import __version__
from elastic_frames.config import get_current_environment, get_datasource_settings
from elastic_frames.tools.flows import compile_queries, query_data
from elastic_frames.utils import test_connection
from elastic_frames.utils.logging_config import setup_logging

# Load environment variables
load_dotenv()

# Initialize MCP server
mcp = FastMCP("elastic-frames")


def _time_range(time_from: str, time_to: Optional[str]) -> Dict[str, Any]:
    return {"from": time_from, "to": time_to or datetime.now(timezone.utc).isoformat()}


# ========== HEALTH TOOL ==========

@mcp.tool()
def health() -> Dict[str, Any]:
    """
    Check Elasticsearch connectivity and the datasource configuration.

    Returns:
        Connection status, environment, index pattern and time field
    """
    settings = get_datasource_settings()
    connected = test_connection()

    return {
        "overall_status": "healthy" if connected else "degraded",
        "environment": get_current_environment(),
        "version": __version__,
        "services": {
            "elasticsearch": {
                "service": "elasticsearch",
                "connected": connected,
                "index": settings.index,
                "index_interval": settings.index_interval,
                "time_field": settings.time_field,
            },
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ========== QUERY TOOLS ==========

@mcp.tool()
def build_multisearch_request(
    queries: List[Dict[str, Any]],
    time_from: str,
    time_to: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Compile queries into the newline-delimited multi-search payload.

    Nothing is sent to Elasticsearch. Queries that fail to compile are
    reported under "errors" and left out of the payload.

    Args:
        queries: Query objects (refId, timeField, metrics, bucketAggs, ...)
        time_from: Range start, ISO-8601 or epoch milliseconds
        time_to: Range end, ISO-8601 or epoch milliseconds (defaults to now)

    Returns:
        Payload text and per-ref-id compile errors
    """
    batch = compile_queries(queries, _time_range(time_from, time_to))
    return {
        "payload": batch.payload.decode("utf-8"),
        "ref_ids": [request.ref_id for request in batch.requests],
        "errors": {
            ref_id: result.error.message
            for ref_id, result in batch.response.responses.items()
            if result.error is not None
        },
    }


@mcp.tool()
def query_frames(
    queries: List[Dict[str, Any]],
    time_from: str,
    time_to: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run queries against Elasticsearch and return the resulting frames.

    Args:
        queries: Query objects (refId, timeField, metrics, bucketAggs, ...)
        time_from: Range start, ISO-8601 or epoch milliseconds
        time_to: Range end, ISO-8601 or epoch milliseconds (defaults to now)

    Returns:
        Mapping of ref-id to {"frames": [...], "error": ...}
    """
    return query_data(queries, _time_range(time_from, time_to)).to_dict()


def main() -> None:
    setup_logging()
    mcp.run()


if __name__ == "__main__":
    main()
