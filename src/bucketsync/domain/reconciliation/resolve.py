"""Source resolution: has the upstream file moved since it was last accepted?

The content token comparison is cheap; the history lookup behind
``SourceHistory.last_change_date`` can be orders of magnitude slower on large
repositories, so it only runs when the content actually changed.
"""

from __future__ import annotations

from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from bucketsync.domain.errors import SourceHistoryError

from .plan import SourceResolution

if TYPE_CHECKING:
    from bucketsync.domain.model import SourceMetadata
    from bucketsync.domain.ports import SourceHistory

log = getLogger(__name__)


def source_file(metadata: SourceMetadata, *, source_root: Path) -> Path | None:
    """Return the upstream file recorded in ``metadata`` if it exists."""

    raw = metadata.source_path
    if raw is None:
        return None
    path = Path(raw).expanduser()
    if not path.is_absolute():
        path = source_root / path
    if not path.is_file():
        log.debug("Source file %s does not exist", path)
        return None
    return path


def resolve_source(
    metadata: SourceMetadata,
    *,
    history: SourceHistory,
    source_root: Path,
) -> SourceResolution | None:
    """Return the authoritative last-change identity, or ``None`` when unavailable."""

    path = source_file(metadata, source_root=source_root)
    if path is None:
        return None

    try:
        token = history.content_id(path)
    except (OSError, SourceHistoryError) as exc:
        log.warning("Cannot compute content id of %s: %s", path, exc)
        return None

    stored_hash = metadata.source_hash
    stored_date = metadata.last_updated
    if stored_hash is not None and stored_hash == token and stored_date is not None:
        return SourceResolution(date=stored_date, hash=token, matched=True)

    try:
        resolved = history.last_change_date(path)
    except (OSError, SourceHistoryError) as exc:
        log.warning("Cannot resolve last change of %s: %s", path, exc)
        return None
    return SourceResolution(date=resolved, hash=token, matched=False)


__all__ = ["resolve_source", "source_file"]
