"""Timestamp helpers for delay and spacing windows."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def utcnow() -> datetime:
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Return ``value`` in UTC, treating naive datetimes as UTC."""

    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 timestamp leniently; unparseable values yield ``None``."""

    if value is None:
        return None
    normalized = value.strip()
    if not normalized:
        return None
    if normalized.endswith(("Z", "z")):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        try:
            day = date.fromisoformat(normalized)
        except ValueError:
            return None
        parsed = datetime(day.year, day.month, day.day, tzinfo=UTC)
    return ensure_aware(parsed)


def format_timestamp(value: datetime) -> str:
    return ensure_aware(value).replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%SZ")


def within_days(moment: datetime | None, days: int | None, *, now: datetime) -> bool:
    """Return whether ``moment`` lies less than ``days`` days before ``now``.

    A missing moment or window never holds a change back.
    """

    if moment is None or days is None or days <= 0:
        return False
    return ensure_aware(now) - ensure_aware(moment) < timedelta(days=days)


__all__ = [
    "Clock",
    "ensure_aware",
    "format_timestamp",
    "parse_timestamp",
    "utcnow",
    "within_days",
]
