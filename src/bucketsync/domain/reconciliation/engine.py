"""Reconciliation driver for one run over a bucket of manifests.

The engine composes the resolver, classifier and policy stages but does not
prescribe concrete adapters: persistence, source history, remote fetching and
operator prompts are injected as ports.
"""

from __future__ import annotations

import difflib
import json
from dataclasses import dataclass, replace
from fnmatch import fnmatchcase
from logging import getLogger
from typing import TYPE_CHECKING

from bucketsync.domain.errors import ManifestFetchError, RunAborted
from bucketsync.domain.model import METADATA_FIELD, manifest_version

from .apply import apply_change
from .classify import classify_change
from .plan import (
    ApplyKind,
    Decision,
    ManifestReport,
    Outcome,
    RunMode,
    RunSummary,
)
from .policy import PolicySubject, available_choices, decide, resolve_choice, review_lock
from .resolve import resolve_source, source_file

if TYPE_CHECKING:
    from pathlib import Path

    from bucketsync.domain.model import Manifest, ManifestBody
    from bucketsync.domain.ports import (
        DecisionPrompt,
        ManifestRepository,
        RemoteManifestFetcher,
        SourceHistory,
    )

    from .plan import Classification, ReconciliationContext

log = getLogger(__name__)

# held-back changes whose diff is shown instead of applied
_SHOWN_OUTCOMES = frozenset({Outcome.LOCKED, Outcome.FLAGGED, Outcome.THROTTLED, Outcome.DEFERRED})


@dataclass(slots=True)
class ReconciliationEngine:
    """Drive every manifest of a repository through one reconciliation mode."""

    repository: ManifestRepository
    history: SourceHistory
    fetcher: RemoteManifestFetcher
    source_root: Path
    prompt: DecisionPrompt | None = None

    def run(self, context: ReconciliationContext, *, pattern: str | None = None) -> RunSummary:
        """Run ``context.mode`` over all manifests matching ``pattern``."""

        if context.mode in (RunMode.INTERACTIVE, RunMode.PROCESS_LOCKS) and self.prompt is None:
            raise ValueError(f"{context.mode} mode requires a decision prompt")

        summary = RunSummary(mode=context.mode)
        manifests = self._load_all(summary, pattern=pattern)
        updateable = [manifest for manifest in manifests if manifest.metadata.is_updateable]
        excluded = [manifest for manifest in manifests if not manifest.metadata.is_updateable]
        log.info(
            "Reconciling %s manifests (%s updateable, %s excluded) in %s mode",
            len(manifests),
            len(updateable),
            len(excluded),
            context.mode,
        )

        if context.mode is RunMode.LIST_MANUAL:
            for manifest in excluded:
                self._report(summary, _excluded_report(manifest))
            return summary
        if context.mode is RunMode.LIST_LOCKS:
            for manifest in updateable:
                if manifest.metadata.effective_state.is_locked:
                    self._report(summary, _lock_report(manifest))
            return summary

        if context.mode is RunMode.PROCESS_LOCKS:
            queue = [m for m in updateable if m.metadata.effective_state.is_locked]
            handler = self._review
        elif context.mode is RunMode.LIST_PENDING:
            queue = updateable
            handler = self._pending
        else:
            for manifest in excluded:
                self._report(summary, _excluded_report(manifest), level="debug")
            queue = updateable
            handler = self._reconcile

        for manifest in queue:
            try:
                report = handler(manifest, context)
            except RunAborted:
                log.warning("Run aborted at %s; earlier changes stay applied", manifest.name)
                summary.aborted = True
                break
            except Exception as exc:  # noqa: BLE001
                log.exception("Failed to reconcile %s", manifest.name)
                report = ManifestReport(
                    name=manifest.name,
                    outcome=Outcome.ERROR,
                    detail=str(exc),
                    old_version=_safe_version(manifest.body),
                )
            level = "debug" if report.outcome is Outcome.CHECKED else "info"
            self._report(summary, report, level=level)

        log.info(
            "Finished %s run: %s updated, %s written, aborted=%s",
            context.mode,
            len(summary.updated),
            len(summary.written),
            summary.aborted,
        )
        return summary

    def _load_all(self, summary: RunSummary, *, pattern: str | None) -> list[Manifest]:
        manifests: list[Manifest] = []
        for name in self.repository.names():
            if pattern is not None and not fnmatchcase(name, pattern):
                continue
            try:
                manifests.append(self.repository.get(name))
            except Exception as exc:  # noqa: BLE001
                log.exception("Failed to load manifest %s", name)
                report = ManifestReport(name=name, outcome=Outcome.ERROR, detail=str(exc))
                self._report(summary, report)
        return manifests

    def _pending(self, manifest: Manifest, context: ReconciliationContext) -> ManifestReport:
        resolution = resolve_source(
            manifest.metadata, history=self.history, source_root=self.source_root
        )
        if resolution is None:
            return ManifestReport(
                name=manifest.name,
                outcome=Outcome.CHECKED,
                detail="no authoritative source date",
                old_version=manifest.version,
            )
        last_updated = manifest.metadata.last_updated
        if last_updated is not None and resolution.date <= last_updated:
            return ManifestReport(
                name=manifest.name, outcome=Outcome.CHECKED, old_version=manifest.version
            )
        return ManifestReport(
            name=manifest.name,
            outcome=Outcome.PENDING,
            detail=f"source changed {resolution.date:%Y-%m-%d}",
            old_version=manifest.version,
        )

    def _reconcile(self, manifest: Manifest, context: ReconciliationContext) -> ManifestReport:
        metadata = manifest.metadata
        resolution = resolve_source(metadata, history=self.history, source_root=self.source_root)
        if resolution is None:
            return ManifestReport(
                name=manifest.name,
                outcome=Outcome.SKIPPED,
                detail="no authoritative source date",
                old_version=manifest.version,
            )

        # unchanged upstream content and no version delta: nothing to fetch or write
        if resolution.matched and not context.deep:
            upstream_version = self._upstream_file_version(manifest)
            if upstream_version == manifest.version:
                return ManifestReport(
                    name=manifest.name, outcome=Outcome.UP_TO_DATE, old_version=manifest.version
                )

        remote = self._fetch_remote(manifest)
        classification = classify_change(
            manifest.body, remote, deep=context.deep, ignored_hosts=context.ignored_hosts
        )
        log.debug("%s: classified as %s", manifest.name, classification.kind)
        subject = PolicySubject(
            metadata=metadata,
            local_version=manifest.version,
            remote_version=manifest_version(remote, name=f"{manifest.name} (remote)"),
            classification=classification,
            resolution=resolution,
        )
        decision = decide(subject, context)
        if decision.outcome in _SHOWN_OUTCOMES:
            log.info("%s: %s\n%s", manifest.name, decision.reason, render_diff(manifest, remote))
        if decision.needs_prompt:
            decision = self._ask(manifest, decision, classification, remote, context)
        elif decision.apply is ApplyKind.WHOLESALE:
            log.warning("%s: applying complex upstream change (%s)", manifest.name, decision.reason)
        return self._commit(manifest, remote, decision)

    def _review(self, manifest: Manifest, context: ReconciliationContext) -> ManifestReport:
        metadata = manifest.metadata
        resolution = resolve_source(metadata, history=self.history, source_root=self.source_root)
        if resolution is None:
            return ManifestReport(
                name=manifest.name,
                outcome=Outcome.SKIPPED,
                detail="no authoritative source date",
                old_version=manifest.version,
            )
        remote = self._fetch_remote(manifest)
        classification = classify_change(
            manifest.body, remote, deep=context.deep, ignored_hosts=context.ignored_hosts
        )
        subject = PolicySubject(
            metadata=metadata,
            local_version=manifest.version,
            remote_version=manifest_version(remote, name=f"{manifest.name} (remote)"),
            classification=classification,
            resolution=resolution,
        )
        decision = review_lock(subject, context)
        decision = self._ask(manifest, decision, classification, remote, context)
        return self._commit(manifest, remote, decision)

    def _ask(
        self,
        manifest: Manifest,
        decision: Decision,
        classification: Classification,
        remote: ManifestBody,
        context: ReconciliationContext,
    ) -> Decision:
        prompt = self.prompt
        if prompt is None:
            raise ValueError(f"{context.mode} mode requires a decision prompt")
        lines = [
            f"{manifest.name}: {classification.kind} "
            f"{manifest.version} -> {_safe_version(remote) or '?'} "
            f"[{manifest.metadata.effective_state}]",
            *(f"  {reason}" for reason in classification.reasons),
        ]
        if decision.apply is not ApplyKind.NONE:
            lines.append(render_diff(manifest, remote))
        choices = available_choices(decision, mode=context.mode)
        choice = prompt(manifest.name, "\n".join(lines), choices)
        log.debug("%s: operator chose %s", manifest.name, choice)
        return resolve_choice(decision, choice, original=manifest.metadata, now=context.now)

    def _commit(
        self, manifest: Manifest, remote: ManifestBody, decision: Decision
    ) -> ManifestReport:
        body = apply_change(decision.apply, manifest.body, remote)
        metadata = decision.metadata
        written = False
        if body != manifest.body or metadata != manifest.metadata:
            if metadata.state is None:
                metadata = replace(metadata, state=manifest.metadata.effective_state)
            written = self.repository.save(replace(manifest, body=body, metadata=metadata))
        return ManifestReport(
            name=manifest.name,
            outcome=decision.outcome,
            detail=decision.reason,
            old_version=manifest.version,
            new_version=_safe_version(body),
            written=written,
        )

    def _fetch_remote(self, manifest: Manifest) -> ManifestBody:
        metadata = manifest.metadata
        if metadata.source_url is not None:
            return self.fetcher(metadata.source_url)
        path = source_file(metadata, source_root=self.source_root)
        if path is None:
            raise ManifestFetchError(f"{manifest.name}: no sourceUrl and no readable source file")
        return self.repository.read_body(path)

    def _upstream_file_version(self, manifest: Manifest) -> str | None:
        path = source_file(manifest.metadata, source_root=self.source_root)
        if path is None:
            return None
        try:
            return manifest_version(self.repository.read_body(path), name=str(path))
        except Exception:  # noqa: BLE001
            log.debug("Cannot read version from %s", path, exc_info=True)
            return None

    @staticmethod
    def _report(summary: RunSummary, report: ManifestReport, *, level: str = "info") -> None:
        summary.add(report)
        if report.outcome is Outcome.ERROR:
            log.error(report.line())
        elif level == "debug":
            log.debug(report.line())
        else:
            log.info(report.line())


def render_diff(manifest: Manifest, remote: ManifestBody) -> str:
    """Unified diff between the local body and the upstream body."""

    local_text = json.dumps(manifest.body, indent=4, ensure_ascii=False).splitlines()
    remote_body = {key: value for key, value in remote.items() if key != METADATA_FIELD}
    remote_text = json.dumps(remote_body, indent=4, ensure_ascii=False).splitlines()
    diff = difflib.unified_diff(
        local_text,
        remote_text,
        fromfile=f"{manifest.name} (local)",
        tofile=f"{manifest.name} (upstream)",
        lineterm="",
    )
    return "\n".join(diff)


def _safe_version(body: ManifestBody) -> str | None:
    version = body.get("version")
    return version if isinstance(version, str) else None


def _excluded_report(manifest: Manifest) -> ManifestReport:
    metadata = manifest.metadata
    return ManifestReport(
        name=manifest.name,
        outcome=Outcome.EXCLUDED,
        detail=f"{metadata.effective_state}, source={metadata.source or '<none>'}",
        old_version=_safe_version(manifest.body),
    )


def _lock_report(manifest: Manifest) -> ManifestReport:
    metadata = manifest.metadata
    found = metadata.last_change_found
    detail = str(metadata.effective_state)
    if found is not None:
        detail += f", change found {found:%Y-%m-%d}"
    return ManifestReport(
        name=manifest.name,
        outcome=Outcome.LOCKED,
        detail=detail,
        old_version=_safe_version(manifest.body),
    )


__all__ = ["ReconciliationEngine", "render_diff"]
