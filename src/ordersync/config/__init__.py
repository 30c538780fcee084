"""Application configuration helpers."""

from __future__ import annotations

from .env import env_int, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config
from .sync import SyncConfig, get_sync_config
from .woocommerce import WooCommerceConfig, get_woocommerce_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "MissingConfigurationError",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "SyncConfig",
    "WooCommerceConfig",
    "env_int",
    "get_database_config",
    "get_storage_config",
    "get_sync_config",
    "get_woocommerce_config",
    "require_env_vars",
]
