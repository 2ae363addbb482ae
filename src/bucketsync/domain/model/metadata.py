"""Per-manifest source tracking record."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from logging import getLogger
from typing import TYPE_CHECKING, ClassVar, Final

from bucketsync.domain.time_windows import format_timestamp, parse_timestamp

from .enums import SourceSentinel, SourceState

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

log = getLogger(__name__)

METADATA_FIELD: Final[str] = "##"

KEY_SOURCE: Final = "source"
KEY_SOURCE_URL: Final = "sourceUrl"
KEY_LAST_UPDATED: Final = "sourceLastUpdated"
KEY_LAST_CHANGE_FOUND: Final = "sourceLastChangeFound"
KEY_HASH: Final = "sourceHash"
KEY_STATE: Final = "sourceState"
KEY_DELAY_DAYS: Final = "sourceDelayDays"
KEY_UPDATE_MINIMUM_DAYS: Final = "sourceUpdateMinimumDays"
KEY_DEFERRED_UPDATE_FOUND: Final = "sourceDeferredUpdateFound"
KEY_COMMENT: Final = "sourceComment"


@dataclass(frozen=True, slots=True, kw_only=True)
class SourceMetadata:
    """Typed view of the recognized ``key: value`` lines of a manifest."""

    source: str | None = None
    source_url: str | None = None
    last_updated: datetime | None = None
    last_change_found: datetime | None = None
    source_hash: str | None = None
    state: SourceState | None = None
    delay_days: int | None = None
    update_minimum_days: int | None = None
    deferred_update_found: datetime | None = None
    comment: str | None = None

    KEYS: ClassVar[dict[str, str]] = {
        "source": KEY_SOURCE,
        "source_url": KEY_SOURCE_URL,
        "last_updated": KEY_LAST_UPDATED,
        "last_change_found": KEY_LAST_CHANGE_FOUND,
        "source_hash": KEY_HASH,
        "state": KEY_STATE,
        "delay_days": KEY_DELAY_DAYS,
        "update_minimum_days": KEY_UPDATE_MINIMUM_DAYS,
        "deferred_update_found": KEY_DEFERRED_UPDATE_FOUND,
        "comment": KEY_COMMENT,
    }

    @classmethod
    def from_mapping(cls, values: Mapping[str, str]) -> SourceMetadata:
        """Build from raw decoded values; malformed values are treated as absent."""

        return cls(
            source=_text(values.get(KEY_SOURCE)),
            source_url=_text(values.get(KEY_SOURCE_URL)),
            last_updated=_timestamp(values, KEY_LAST_UPDATED),
            last_change_found=_timestamp(values, KEY_LAST_CHANGE_FOUND),
            source_hash=_text(values.get(KEY_HASH)),
            state=_state(values.get(KEY_STATE)),
            delay_days=_days(values, KEY_DELAY_DAYS),
            update_minimum_days=_days(values, KEY_UPDATE_MINIMUM_DAYS),
            deferred_update_found=_timestamp(values, KEY_DEFERRED_UPDATE_FOUND),
            comment=_text(values.get(KEY_COMMENT)),
        )

    def to_mapping(self) -> dict[str, str]:
        values: dict[str, str] = {}
        for item in fields(self):
            value = getattr(self, item.name)
            if value is None:
                continue
            key = self.KEYS[item.name]
            if isinstance(value, SourceState):
                values[key] = value.value
            elif isinstance(value, int):
                values[key] = str(value)
            elif isinstance(value, str):
                values[key] = value
            else:
                values[key] = format_timestamp(value)
        return values

    @property
    def sentinel(self) -> SourceSentinel | None:
        if self.source is None:
            return None
        try:
            return SourceSentinel(self.source.strip().upper())
        except ValueError:
            return None

    @property
    def source_path(self) -> str | None:
        """The upstream file path, or ``None`` for sentinels and missing sources."""

        if self.source is None or self.sentinel is not None:
            return None
        return self.source

    @property
    def effective_state(self) -> SourceState:
        if self.state is not None:
            return self.state
        if self.sentinel is SourceSentinel.DEPRECATED:
            return SourceState.DEAD
        if self.source_path is not None:
            return SourceState.ACTIVE
        return SourceState.MANUAL

    @property
    def is_updateable(self) -> bool:
        return not self.effective_state.is_excluded and self.sentinel is None

    def with_accepted_source(self, date: datetime, token: str) -> SourceMetadata:
        """Record accepted upstream content; hash and date always move together."""

        return replace(self, last_updated=date, source_hash=token)

    def with_deferred_marker(self, now: datetime) -> SourceMetadata:
        if self.deferred_update_found is not None:
            return self
        return replace(self, deferred_update_found=now)


def _text(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def _timestamp(values: Mapping[str, str], key: str) -> datetime | None:
    raw = _text(values.get(key))
    parsed = parse_timestamp(raw)
    if raw is not None and parsed is None:
        log.debug("Ignoring unparseable %s value %r", key, raw)
    return parsed


def _days(values: Mapping[str, str], key: str) -> int | None:
    raw = _text(values.get(key))
    if raw is None:
        return None
    try:
        days = int(raw)
    except ValueError:
        log.debug("Ignoring non-integer %s value %r", key, raw)
        return None
    return days if days >= 0 else None


def _state(value: str | None) -> SourceState | None:
    raw = _text(value)
    if raw is None:
        return None
    try:
        return SourceState(raw.lower())
    except ValueError:
        log.debug("Ignoring unknown sourceState %r", raw)
        return None


RECOGNIZED_KEYS: Final[frozenset[str]] = frozenset(SourceMetadata.KEYS.values())
