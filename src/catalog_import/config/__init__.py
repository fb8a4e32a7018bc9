"""Application configuration helpers."""

from __future__ import annotations

from .backend import GraphBackendConfig, get_graph_backend_config
from .env import positive_int_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import ResilienceConfig, RetryPolicy, get_resilience_config
from .logging import configure_logging, parse_log_level
from .pipeline import PipelineConfig, get_pipeline_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "GraphBackendConfig",
    "MissingConfigurationError",
    "PipelineConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_graph_backend_config",
    "get_pipeline_config",
    "get_resilience_config",
    "get_storage_config",
    "parse_log_level",
    "positive_int_env",
    "require_env_vars",
]
