"""Upstream manifest fetching configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_var
from .errors import ConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

UPSTREAM_TIMEOUT_SECONDS = 20.0
DEFAULT_USER_AGENT = "bucketsync (+https://github.com/ScoopInstaller)"


@dataclass(frozen=True, slots=True)
class UpstreamConfig:
    resilience: ResilienceConfig


def _looks_like_manifest(payload: object) -> bool:
    return isinstance(payload, dict) and isinstance(payload.get("version"), str)


def _cache_config() -> CacheConfig | None:
    backend = (optional_env_var("BUCKETSYNC_HTTP_CACHE") or "off").lower()
    if backend == "off":
        return None
    if backend == "sqlite":
        return CacheConfig(enabled=True, should_cache=_looks_like_manifest)
    raise ConfigurationError(f"Unsupported BUCKETSYNC_HTTP_CACHE value: {backend!r}")


def get_upstream_config() -> UpstreamConfig:
    headers = {
        "User-Agent": optional_env_var("BUCKETSYNC_USER_AGENT") or DEFAULT_USER_AGENT,
        "Accept": "application/json, text/plain;q=0.9",
    }
    token = optional_env_var("GITHUB_TOKEN")
    if token is not None:
        headers["Authorization"] = f"Bearer {token}"

    resilience = ResilienceConfig(
        name="upstream",
        timeout_seconds=UPSTREAM_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=3),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
        cache=_cache_config(),
        default_headers=headers,
    )
    return UpstreamConfig(resilience=resilience)
