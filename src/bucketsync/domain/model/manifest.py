"""Manifest aggregate: document body plus its associated source record."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeAlias

from bucketsync.domain.errors import ManifestFormatError

from .metadata import METADATA_FIELD, SourceMetadata

ManifestBody: TypeAlias = dict[str, Any]


@dataclass(slots=True, kw_only=True)
class Manifest:
    """One package descriptor, identified by its file stem.

    ``body`` never contains the reserved metadata field; the metadata lives in
    ``metadata`` and unrecognized lines of the reserved field in ``comments``.
    """

    name: str
    body: ManifestBody
    metadata: SourceMetadata = field(default_factory=SourceMetadata)
    comments: tuple[str, ...] = ()
    comment_position: int | None = None

    def __post_init__(self) -> None:
        if METADATA_FIELD in self.body:
            raise ManifestFormatError(
                f"{self.name}: body must not carry the {METADATA_FIELD!r} field"
            )

    @property
    def version(self) -> str:
        return manifest_version(self.body, name=self.name)


def manifest_version(body: ManifestBody, *, name: str = "manifest") -> str:
    version = body.get("version")
    if not isinstance(version, str) or not version.strip():
        raise ManifestFormatError(f"{name}: missing or non-string 'version'")
    return version.strip()
