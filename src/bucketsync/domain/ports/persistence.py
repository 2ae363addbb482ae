"""Ports for loading and storing manifests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from bucketsync.domain.model import Manifest, ManifestBody


@runtime_checkable
class ManifestRepository(Protocol):
    """Persistence contract for the local manifest directory."""

    def names(self) -> Sequence[str]: ...

    def get(self, name: str) -> Manifest: ...

    def save(self, manifest: Manifest) -> bool:
        """Persist ``manifest``; return ``False`` when the file already matches."""
        ...

    def read_body(self, path: Path) -> ManifestBody:
        """Read an arbitrary manifest file (such as an upstream source) as a body."""
        ...


__all__ = ["ManifestRepository"]
