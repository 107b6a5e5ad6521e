"""
Configuration management for elastic-frames.
"""

from .environments import (
    DatasourceSettings,
    get_current_environment,
    get_datasource_settings,
    get_default,
    get_elasticsearch_config,
    get_environment_config,
)

__all__ = [
    "DatasourceSettings",
    "get_current_environment",
    "get_datasource_settings",
    "get_default",
    "get_elasticsearch_config",
    "get_environment_config",
]
