"""Domain error hierarchy."""

from __future__ import annotations


class BucketSyncError(RuntimeError):
    """Base class for recoverable reconciliation errors."""


class ManifestFormatError(BucketSyncError):
    """Raised when a manifest document cannot be interpreted."""


class ManifestFetchError(BucketSyncError):
    """Raised when the upstream manifest cannot be retrieved or parsed."""

    def __init__(self, message: str, *, url: str | None = None) -> None:
        super().__init__(message)
        self.url = url


class SourceHistoryError(BucketSyncError):
    """Raised when the history of an upstream source file cannot be read."""


class RunAborted(BucketSyncError):  # noqa: N818
    """Raised when the user quits an interactive run."""
