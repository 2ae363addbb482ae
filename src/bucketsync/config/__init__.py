"""Application configuration helpers."""

from __future__ import annotations

from .env import env_flag, env_list, optional_env_var
from .errors import ConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .reconcile import ReconcileConfig, get_reconcile_config
from .storage import StorageConfig, get_http_cache_path, get_storage_config
from .upstream import UpstreamConfig, get_upstream_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "RateLimit",
    "ReconcileConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "UpstreamConfig",
    "configure_logging",
    "env_flag",
    "env_list",
    "get_http_cache_path",
    "get_reconcile_config",
    "get_storage_config",
    "get_upstream_config",
    "optional_env_var",
]
