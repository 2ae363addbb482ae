"""Ports for querying the history of upstream source files."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime
    from pathlib import Path


@runtime_checkable
class SourceHistory(Protocol):
    """Content identity and last-change lookup for a local upstream file."""

    def content_id(self, path: Path) -> str:
        """Return a token that changes whenever the file content changes."""
        ...

    def last_change_date(self, path: Path) -> datetime:
        """Return the authoritative last modification time of ``path``."""
        ...


__all__ = ["SourceHistory"]
