"""Types shared by the resolver/classifier/policy/driver stages.

Keeping these contracts explicit prevents implicit coupling between the
stages: the classifier only produces a ``Classification``, the policy only
turns it into a ``Decision``, and only the driver touches persistence.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime

    from bucketsync.domain.model import SourceMetadata


class RunMode(StrEnum):
    AUTOMATIC = "automatic"
    INTERACTIVE = "interactive"
    LIST_PENDING = "list-pending"
    LIST_MANUAL = "list-manual"
    LIST_LOCKS = "list-locks"
    PROCESS_LOCKS = "process-locks"


@dataclass(frozen=True, slots=True, kw_only=True)
class ReconciliationContext:
    """Explicit per-run values threaded through every stage."""

    now: datetime
    mode: RunMode = RunMode.AUTOMATIC
    deep: bool = False
    auto_apply_complex: bool = True
    ignored_hosts: frozenset[str] = frozenset()


@dataclass(frozen=True, slots=True)
class SourceResolution:
    """Authoritative last-change identity of an upstream source file."""

    date: datetime
    hash: str
    matched: bool


class ChangeKind(StrEnum):
    NO_CHANGE = "no-change"
    SIMPLE_VERSION_CHANGE = "simple"
    DOMAIN_CHANGE = "domain-change"
    LICENSE_CHANGE = "license-change"
    COMPLEX_CHANGE = "complex"


@dataclass(frozen=True, slots=True)
class Classification:
    kind: ChangeKind
    reasons: tuple[str, ...] = ()


class Outcome(StrEnum):
    """Per-manifest result, also used as the textual status line."""

    CHECKED = "checked"
    UP_TO_DATE = "up-to-date"
    UPDATED = "updated"
    LOCKED = "locked"
    FLAGGED = "flagged"
    DEFERRED = "deferred"
    THROTTLED = "throttled"
    HALTED = "halted"
    SKIPPED = "skipped"
    UNLOCKED = "unlocked"
    PENDING = "pending"
    EXCLUDED = "excluded"
    ERROR = "error"


class ApplyKind(StrEnum):
    """How the manifest body changes when a decision is applied."""

    NONE = "none"
    SIMPLE = "simple"
    WHOLESALE = "wholesale"


@dataclass(frozen=True, slots=True, kw_only=True)
class Decision:
    """Policy output for one manifest.

    ``metadata`` is the record to persist; it equals the input record when
    nothing should be written. ``needs_prompt`` asks the driver to consult the
    operator before the decision is final.
    """

    outcome: Outcome
    metadata: SourceMetadata
    apply: ApplyKind = ApplyKind.NONE
    needs_prompt: bool = False
    reason: str | None = None


@dataclass(slots=True, kw_only=True)
class ManifestReport:
    name: str
    outcome: Outcome
    detail: str | None = None
    old_version: str | None = None
    new_version: str | None = None
    written: bool = False

    def line(self) -> str:
        parts = [f"{self.name}: {self.outcome}"]
        if self.old_version and self.new_version and self.old_version != self.new_version:
            parts.append(f"{self.old_version} -> {self.new_version}")
        elif self.old_version:
            parts.append(self.old_version)
        if self.detail:
            parts.append(f"({self.detail})")
        return " ".join(parts)


@dataclass(slots=True)
class RunSummary:
    """Outcome of one reconciliation run across the bucket."""

    mode: RunMode
    reports: list[ManifestReport] = field(default_factory=list["ManifestReport"])
    aborted: bool = False

    def add(self, report: ManifestReport) -> None:
        self.reports.append(report)

    def by_outcome(self, outcome: Outcome) -> list[ManifestReport]:
        return [report for report in self.reports if report.outcome is outcome]

    @property
    def updated(self) -> list[ManifestReport]:
        return self.by_outcome(Outcome.UPDATED)

    @property
    def written(self) -> list[str]:
        return [report.name for report in self.reports if report.written]

    def summary_lines(self) -> list[str]:
        lines = [
            f"{report.name:<24} {report.old_version} -> {report.new_version}"
            for report in self.updated
        ]
        lines.append(f"{len(self.updated)} packages updated")
        return lines

    def commit_message(self) -> str | None:
        """Commit message text for the updated packages, ``None`` when nothing changed."""

        updated = self.updated
        if not updated:
            return None
        header = f"{len(updated)} packages updated: " + " ".join(r.name for r in updated)
        body = "\n".join(
            f"\t{report.name} - {report.old_version} -> {report.new_version}" for report in updated
        )
        return f"{header}\n\n{body}\n"
