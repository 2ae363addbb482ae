"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SourceState(StrEnum):
    ACTIVE = "active"
    MANUAL = "manual"
    DEAD = "dead"
    FROZEN = "frozen"
    DOMAIN_CHANGE_LOCK = "domain-change-lock"
    LICENSE_CHANGE_LOCK = "license-change-lock"

    @property
    def is_locked(self) -> bool:
        return self in LOCKED_STATES

    @property
    def is_excluded(self) -> bool:
        """Absorbing states that are never polled upstream."""
        return self in (SourceState.MANUAL, SourceState.DEAD)


LOCKED_STATES = frozenset(
    {SourceState.FROZEN, SourceState.DOMAIN_CHANGE_LOCK, SourceState.LICENSE_CHANGE_LOCK}
)


class SourceSentinel(StrEnum):
    """Values of the ``source`` key that do not name a file."""

    MANUAL = "MANUAL"
    DEPRECATED = "DEPRECATED"
