"""Application configuration helpers."""

from __future__ import annotations

from .anaf import AnafConfig, get_anaf_config
from .dedup import DedupConfig, get_dedup_config
from .env import optional_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .ingestion import IngestionConfig, get_ingestion_config
from .logging import configure_logging
from .sources import (
    SourceEndpointConfig,
    get_eu_funds_config,
    get_seap_config,
    get_stub_provider_path,
    get_third_party_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "AnafConfig",
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "DedupConfig",
    "IngestionConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SourceEndpointConfig",
    "StorageConfig",
    "configure_logging",
    "get_anaf_config",
    "get_database_config",
    "get_dedup_config",
    "get_eu_funds_config",
    "get_ingestion_config",
    "get_seap_config",
    "get_stub_provider_path",
    "get_storage_config",
    "get_third_party_config",
    "optional_env",
    "require_env_vars",
]
