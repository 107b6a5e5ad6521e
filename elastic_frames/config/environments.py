"""
Environment configuration management.
"""

import os
from dataclasses import dataclass
from typing import Dict, Any, Optional


# Single environment configuration - reads directly from env vars
DEFAULT_CONFIG = {
    "name": "default",
    "elasticsearch": {
        "url": os.getenv("ELASTIC_URL", os.getenv("ELASTICSEARCH_URL", "http://localhost:9200")),
        "username": os.getenv("ELASTIC_USERNAME", os.getenv("ELASTICSEARCH_USERNAME")),
        "password": os.getenv("ELASTIC_PASSWORD", os.getenv("ELASTICSEARCH_PASSWORD")),
        "api_key": os.getenv("ELASTIC_API_KEY", os.getenv("ELASTICSEARCH_API_KEY")),
        "timeout_ms": int(os.getenv("ELASTIC_TIMEOUT", os.getenv("ELASTICSEARCH_TIMEOUT", "30000"))),
        "verify_certs": True,
        "ca_certs": os.getenv("ELASTIC_CA_CERTS"),
    },
    "datasource": {
        "index": os.getenv("ELASTIC_INDEX", "*"),
        "index_interval": os.getenv("ELASTIC_INDEX_INTERVAL") or None,
        "time_field": os.getenv("ELASTIC_TIME_FIELD", "@timestamp"),
        "max_concurrent_shard_requests": int(os.getenv("ELASTIC_MAX_CONCURRENT_SHARD_REQUESTS", "0")),
        "default_raw_size": int(os.getenv("ELASTIC_DEFAULT_RAW_SIZE", "500")),
        "time_interval": os.getenv("ELASTIC_TIME_INTERVAL", "10s"),
    },
    "defaults": {
        "max_data_points": 1000,
        "terms_size": 500,
        "histogram_interval": 1000,
        "geohash_precision": 3,
    },
    "logging": {
        "level": os.getenv("LOG_LEVEL", "INFO"),
        "json": os.getenv("LOG_JSON", "false").lower() in ("1", "true", "yes"),
    },
}


@dataclass(frozen=True)
class DatasourceSettings:
    """Per-datasource settings used while compiling queries."""
    index: str = "*"
    index_interval: Optional[str] = None
    time_field: str = "@timestamp"
    max_concurrent_shard_requests: int = 0
    default_raw_size: int = 500
    time_interval: str = "10s"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DatasourceSettings":
        """Create from a datasource configuration dict."""
        return cls(
            index=data.get("index") or "*",
            index_interval=data.get("index_interval") or None,
            time_field=data.get("time_field") or "@timestamp",
            max_concurrent_shard_requests=int(data.get("max_concurrent_shard_requests") or 0),
            default_raw_size=int(data.get("default_raw_size") or 500),
            time_interval=data.get("time_interval") or "10s",
        )


def get_current_environment() -> str:
    """
    Get the current environment name.

    Returns:
        Always returns 'default' since we use a single environment
    """
    return "default"


def get_environment_config(environment: Optional[str] = None) -> Dict[str, Any]:
    """
    Get configuration for the environment.

    Args:
        environment: Ignored (kept for compatibility)

    Returns:
        Environment configuration dictionary
    """
    return DEFAULT_CONFIG


def get_elasticsearch_config(environment: Optional[str] = None) -> Dict[str, Any]:
    """
    Get Elasticsearch configuration.

    Args:
        environment: Ignored (kept for compatibility)

    Returns:
        Elasticsearch configuration dictionary
    """
    return get_environment_config(environment)["elasticsearch"]


def get_datasource_settings(environment: Optional[str] = None) -> DatasourceSettings:
    """
    Get the datasource settings (index pattern, time field, limits).

    Args:
        environment: Ignored (kept for compatibility)

    Returns:
        DatasourceSettings built from configuration
    """
    return DatasourceSettings.from_dict(get_environment_config(environment)["datasource"])


def get_default(name: str, environment: Optional[str] = None) -> Any:
    """
    Look up a query-building default.

    Args:
        name: Default name (e.g. "terms_size")
        environment: Ignored (kept for compatibility)

    Returns:
        The configured default value
    """
    return get_environment_config(environment)["defaults"][name]
