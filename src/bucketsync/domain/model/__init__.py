"""Domain model for manifests and their source tracking metadata."""

from __future__ import annotations

from .enums import LOCKED_STATES, SourceSentinel, SourceState
from .manifest import Manifest, ManifestBody, manifest_version
from .metadata import METADATA_FIELD, RECOGNIZED_KEYS, SourceMetadata

__all__ = [
    "LOCKED_STATES",
    "METADATA_FIELD",
    "RECOGNIZED_KEYS",
    "Manifest",
    "ManifestBody",
    "SourceMetadata",
    "SourceSentinel",
    "SourceState",
    "manifest_version",
]
