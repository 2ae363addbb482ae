"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import RemoteManifestFetcher
from .history import SourceHistory
from .persistence import ManifestRepository
from .prompting import Choice, DecisionPrompt

__all__ = [
    "Choice",
    "DecisionPrompt",
    "ManifestRepository",
    "RemoteManifestFetcher",
    "SourceHistory",
]
