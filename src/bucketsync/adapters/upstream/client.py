"""HTTP client for upstream manifests."""

from __future__ import annotations

import asyncio
import re
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

import httpx
from pydantic import ValidationError

from bucketsync.adapters.http_resilience import ResilientClient
from bucketsync.domain.errors import ManifestFetchError

from .schema import UpstreamManifest

if TYPE_CHECKING:
    from collections.abc import Callable

    from bucketsync.config.http_resilience import ResilienceConfig
    from bucketsync.config.upstream import UpstreamConfig

log = getLogger(__name__)

_GITHUB_BLOB_RE: Final = re.compile(
    r"^https?://github\.com/(?P<owner>[^/]+)/(?P<repo>[^/]+)/blob/(?P<rest>.+)$"
)


def raw_manifest_url(url: str) -> str:
    """Point GitHub ``blob`` page URLs at the raw file content."""

    match = _GITHUB_BLOB_RE.match(url.strip())
    if match is None:
        return url.strip()
    return (
        f"https://raw.githubusercontent.com/{match['owner']}/{match['repo']}/{match['rest']}"
    )


class UpstreamManifestClient:
    """Fetch and validate upstream manifests; one blocking request per call."""

    def __init__(
        self,
        *,
        config: UpstreamConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient

    def __call__(self, url: str) -> dict[str, Any]:
        return asyncio.run(self._fetch_async(raw_manifest_url(url)))

    async def _fetch_async(self, url: str) -> dict[str, Any]:
        log.debug("Fetching upstream manifest %s", url)
        async with self._client_factory(self._resilience) as client:
            try:
                response = await client.get(url)
                response.raise_for_status()
            except httpx.HTTPError as exc:
                raise ManifestFetchError(f"Failed to fetch {url}: {exc}", url=url) from exc

        try:
            payload = response.json()
        except ValueError as exc:
            raise ManifestFetchError(f"Upstream {url} is not valid JSON", url=url) from exc
        if not isinstance(payload, dict):
            raise ManifestFetchError(f"Upstream {url} is not a JSON object", url=url)

        try:
            UpstreamManifest.model_validate(payload)
        except ValidationError as exc:
            raise ManifestFetchError(f"Upstream {url} is not a manifest: {exc}", url=url) from exc
        return payload
