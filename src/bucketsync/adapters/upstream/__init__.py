"""Upstream manifest fetching adapter."""

from __future__ import annotations

from .client import UpstreamManifestClient, raw_manifest_url
from .schema import UpstreamManifest

__all__ = ["UpstreamManifest", "UpstreamManifestClient", "raw_manifest_url"]
