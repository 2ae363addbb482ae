"""Codec between the reserved ``"##"`` comment array and the source record.

The manifest schema only tolerates free text under ``"##"``, so metadata is
serialized there as ``key: value`` lines. Everything else in the array is kept
verbatim as passthrough content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Any, Final

from bucketsync.domain.errors import ManifestFormatError
from bucketsync.domain.model import METADATA_FIELD, RECOGNIZED_KEYS, Manifest, SourceMetadata

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

log = getLogger(__name__)

_KEY_RE: Final = re.compile(
    r"^\s*(?P<key>"
    + "|".join(re.escape(key) for key in sorted(RECOGNIZED_KEYS, key=len, reverse=True))
    + r")\s*:"
)


@dataclass(frozen=True, slots=True)
class DecodedMetadata:
    values: dict[str, str]
    passthrough: tuple[str, ...]


def _comment_lines(document: Mapping[str, Any]) -> list[str]:
    raw = document.get(METADATA_FIELD)
    if raw is None:
        return []
    if isinstance(raw, str):
        return [raw]
    if isinstance(raw, list):
        return [item if isinstance(item, str) else str(item) for item in raw]
    log.debug("Ignoring non-text %r field of type %s", METADATA_FIELD, type(raw).__name__)
    return [str(raw)]


def decode_metadata(document: Mapping[str, Any]) -> DecodedMetadata:
    """Split the reserved field into recognized values and passthrough lines."""

    values: dict[str, str] = {}
    passthrough: list[str] = []
    for line in _comment_lines(document):
        match = _KEY_RE.match(line)
        if match is None:
            passthrough.append(line)
            continue
        _, _, value = line.partition(":")
        values[match.group("key")] = value.strip()
    return DecodedMetadata(values=values, passthrough=tuple(passthrough))


def encode_metadata(
    document: Mapping[str, Any],
    values: Mapping[str, str],
    passthrough: Sequence[str] | None = None,
    *,
    position: int | None = None,
) -> dict[str, Any]:
    """Return a copy of ``document`` with its reserved field rewritten.

    Recognized lines are replaced by one ``key: value`` line per entry of
    ``values`` (sorted by key); passthrough lines keep their order in front.
    The field keeps its position when ``document`` already has it.
    """

    kept = (
        list(passthrough)
        if passthrough is not None
        else [line for line in _comment_lines(document) if _KEY_RE.match(line) is None]
    )
    lines = kept + [
        f"{key}: {value.strip()}" for key, value in sorted(values.items()) if value.strip()
    ]

    keys = list(document)
    if position is None and METADATA_FIELD in document:
        position = keys.index(METADATA_FIELD)
    body_items = [(key, value) for key, value in document.items() if key != METADATA_FIELD]
    if not lines:
        return dict(body_items)
    if position is None or position > len(body_items):
        position = len(body_items)
    body_items.insert(position, (METADATA_FIELD, lines))
    return dict(body_items)


def manifest_from_document(name: str, document: Mapping[str, Any]) -> Manifest:
    """Decode a raw JSON document into a ``Manifest``."""

    if not isinstance(document, dict):
        raise ManifestFormatError(f"{name}: manifest must be a JSON object")
    decoded = decode_metadata(document)
    keys = list(document)
    position = keys.index(METADATA_FIELD) if METADATA_FIELD in document else None
    body = {key: value for key, value in document.items() if key != METADATA_FIELD}
    return Manifest(
        name=name,
        body=body,
        metadata=SourceMetadata.from_mapping(decoded.values),
        comments=decoded.passthrough,
        comment_position=position,
    )


def manifest_to_document(manifest: Manifest) -> dict[str, Any]:
    """Encode a ``Manifest`` back into the on-disk document layout."""

    return encode_metadata(
        manifest.body,
        manifest.metadata.to_mapping(),
        manifest.comments,
        position=manifest.comment_position,
    )


__all__ = [
    "DecodedMetadata",
    "decode_metadata",
    "encode_metadata",
    "manifest_from_document",
    "manifest_to_document",
]
