"""Ports for fetching upstream manifests."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from bucketsync.domain.model import ManifestBody


@runtime_checkable
class RemoteManifestFetcher(Protocol):
    """Callable port retrieving the upstream manifest body at ``url``.

    Implementations raise ``ManifestFetchError`` for network, status or parse
    failures.
    """

    def __call__(self, url: str) -> ManifestBody: ...


__all__ = ["RemoteManifestFetcher"]
