"""JSON file persistence for a bucket directory of manifests."""

from __future__ import annotations

import json
import os
import tempfile
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING, Any

from bucketsync.domain.errors import ManifestFormatError
from bucketsync.domain.reconciliation.metadata_codec import (
    manifest_from_document,
    manifest_to_document,
)

if TYPE_CHECKING:
    from bucketsync.domain.model import Manifest, ManifestBody

log = getLogger(__name__)

MANIFEST_SUFFIX = ".json"


def dump_document(document: dict[str, Any]) -> str:
    return json.dumps(document, indent=4, ensure_ascii=False) + "\n"


def load_document(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8-sig")
    except OSError as exc:
        raise ManifestFormatError(f"Cannot read {path}: {exc}") from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestFormatError(f"{path} is not valid JSON: {exc}") from exc


class JsonManifestRepository:
    """``ManifestRepository`` over ``<bucket_dir>/<name>.json`` files."""

    def __init__(self, bucket_dir: Path) -> None:
        self.bucket_dir = bucket_dir

    def names(self) -> list[str]:
        if not self.bucket_dir.is_dir():
            log.warning("Bucket directory %s does not exist", self.bucket_dir)
            return []
        return sorted(path.stem for path in self.bucket_dir.glob(f"*{MANIFEST_SUFFIX}"))

    def path_for(self, name: str) -> Path:
        return self.bucket_dir / f"{name}{MANIFEST_SUFFIX}"

    def get(self, name: str) -> Manifest:
        return manifest_from_document(name, load_document(self.path_for(name)))

    def read_body(self, path: Path) -> ManifestBody:
        document = load_document(path)
        if not isinstance(document, dict):
            raise ManifestFormatError(f"{path} does not contain a JSON object")
        return document

    def save(self, manifest: Manifest) -> bool:
        path = self.path_for(manifest.name)
        text = dump_document(manifest_to_document(manifest))
        try:
            if path.read_text(encoding="utf-8-sig") == text:
                return False
        except FileNotFoundError:
            pass

        fd, tmp_name = tempfile.mkstemp(prefix=f".{manifest.name}.", dir=self.bucket_dir)
        try:
            with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as handle:
                handle.write(text)
            Path(tmp_name).replace(path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        log.debug("Wrote %s", path)
        return True


__all__ = ["JsonManifestRepository", "dump_document", "load_document"]
