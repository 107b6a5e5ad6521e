"""
Elasticsearch connection management.
"""

import logging
from typing import Any, Dict, Optional

from elasticsearch import Elasticsearch

from elastic_frames.config.environments import get_elasticsearch_config


logger = logging.getLogger(__name__)


def build_client_params(config: Dict[str, Any]) -> Dict[str, Any]:
    """
    Translate configuration into Elasticsearch client keyword arguments.

    Args:
        config: Elasticsearch configuration section

    Returns:
        Keyword arguments for ``Elasticsearch(...)``
    """
    params: Dict[str, Any] = {
        "hosts": [config["url"]],
        "request_timeout": config["timeout_ms"] / 1000.0,
        "verify_certs": config.get("verify_certs", True),
    }

    if config.get("ca_certs"):
        params["ca_certs"] = config["ca_certs"]

    # API key takes precedence over basic auth
    if config.get("api_key"):
        params["api_key"] = config["api_key"]
    elif config.get("username") and config.get("password"):
        params["basic_auth"] = (config["username"], config["password"])

    return params


def get_elasticsearch_client(environment: Optional[str] = None) -> Elasticsearch:
    """
    Create an Elasticsearch client for the configured cluster.

    Args:
        environment: Environment name (uses current if not specified)

    Returns:
        Configured Elasticsearch client
    """
    config = get_elasticsearch_config(environment)
    logger.debug("Creating Elasticsearch client for %s", config["url"])
    return Elasticsearch(**build_client_params(config))


def test_connection(client: Optional[Elasticsearch] = None) -> bool:
    """
    Check that the cluster answers a zero-size search.

    A search needs fewer privileges than ping(), which requires
    cluster:monitor.

    Args:
        client: Client to use (a configured one is created if omitted)

    Returns:
        True if connection successful
    """
    try:
        es = client or get_elasticsearch_client()
        response = es.search(index="*", size=0, query={"match_all": {}}, timeout="5s")
        return "hits" in response
    except Exception as e:
        logger.warning("Elasticsearch connection check failed: %s", e)
        return False
