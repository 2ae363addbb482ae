"""Policy engine: the per-manifest lifecycle state machine.

Given a classified upstream change, decide whether it is applied, deferred,
locked for manual review or only reported. Rules are evaluated in order:

1. a manifest already in a lock state is never modified
2. a version regression halts the manifest
3. a license change locks the manifest (``license-change-lock``)
4. a domain change locks the manifest (``domain-change-lock``)
5. the minimum-spacing gate reports without writing
6. the delay gate defers until the deferred marker has aged past the window
7. simple changes are applied
8. complex changes are applied, flagged or prompted for, depending on mode

License and domain locks are evaluated before both timing gates. The policy
is pure; the driver persists whatever metadata the decision carries.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from bucketsync.domain.errors import RunAborted
from bucketsync.domain.model import SourceState
from bucketsync.domain.ports import Choice
from bucketsync.domain.time_windows import within_days
from bucketsync.domain.versions import compare_versions, is_regression

from .plan import ApplyKind, ChangeKind, Decision, Outcome, RunMode

if TYPE_CHECKING:
    from datetime import datetime

    from bucketsync.domain.model import SourceMetadata

    from .plan import Classification, ReconciliationContext, SourceResolution


@dataclass(frozen=True, slots=True, kw_only=True)
class PolicySubject:
    """Everything the policy needs to know about one manifest."""

    metadata: SourceMetadata
    local_version: str
    remote_version: str
    classification: Classification
    resolution: SourceResolution


def decide(subject: PolicySubject, context: ReconciliationContext) -> Decision:
    metadata = subject.metadata
    state = metadata.effective_state
    kind = subject.classification.kind
    now = context.now

    if kind is ChangeKind.NO_CHANGE:
        return decide_unchanged(metadata, subject.resolution)

    if state.is_locked:
        return Decision(
            outcome=Outcome.LOCKED,
            metadata=metadata.with_deferred_marker(now),
            reason=f"state {state}",
        )

    if _is_regression(subject, deep=context.deep):
        return Decision(
            outcome=Outcome.HALTED,
            metadata=metadata,
            reason=f"remote version {subject.remote_version} is not newer",
        )

    if kind is ChangeKind.LICENSE_CHANGE:
        return _lock(subject, SourceState.LICENSE_CHANGE_LOCK, now=now)
    if kind is ChangeKind.DOMAIN_CHANGE:
        return _lock(subject, SourceState.DOMAIN_CHANGE_LOCK, now=now)

    if within_days(metadata.last_change_found, metadata.update_minimum_days, now=now):
        return Decision(
            outcome=Outcome.THROTTLED,
            metadata=metadata,
            reason=f"last change found less than {metadata.update_minimum_days} days ago",
        )

    # age of the upstream change, i.e. the sourceLastUpdated value it would be recorded with
    if within_days(subject.resolution.date, metadata.delay_days, now=now):
        marker = metadata.deferred_update_found
        if marker is None or within_days(marker, metadata.delay_days, now=now):
            return Decision(
                outcome=Outcome.DEFERRED,
                metadata=metadata.with_deferred_marker(now),
                reason=f"delayed for {metadata.delay_days} days",
            )

    accepted = _accepted(subject, now=now)
    if kind is ChangeKind.SIMPLE_VERSION_CHANGE:
        return Decision(
            outcome=Outcome.UPDATED,
            metadata=accepted,
            apply=ApplyKind.SIMPLE,
            needs_prompt=context.mode is RunMode.INTERACTIVE,
        )

    if context.mode is RunMode.INTERACTIVE:
        return Decision(
            outcome=Outcome.UPDATED,
            metadata=accepted,
            apply=ApplyKind.WHOLESALE,
            needs_prompt=True,
            reason="complex change",
        )
    if context.auto_apply_complex:
        return Decision(
            outcome=Outcome.UPDATED,
            metadata=accepted,
            apply=ApplyKind.WHOLESALE,
            reason="complex change applied",
        )
    return Decision(
        outcome=Outcome.FLAGGED,
        metadata=_record_detection(metadata, now=now),
        reason="complex change needs review",
    )


def decide_unchanged(metadata: SourceMetadata, resolution: SourceResolution) -> Decision:
    """Nothing to apply; remember the upstream identity so later runs short-circuit."""

    if resolution.matched:
        return Decision(outcome=Outcome.UP_TO_DATE, metadata=metadata)
    # local caught up with upstream; a marker from an earlier deferral is stale
    accepted = metadata.with_accepted_source(resolution.date, resolution.hash)
    return Decision(
        outcome=Outcome.UP_TO_DATE,
        metadata=replace(accepted, deferred_update_found=None),
    )


def review_lock(subject: PolicySubject, context: ReconciliationContext) -> Decision:
    """Offer a locked manifest for unlocking, with its pending upstream change if any."""

    metadata = subject.metadata
    kind = subject.classification.kind
    if kind is ChangeKind.NO_CHANGE or _is_regression(subject, deep=context.deep):
        return Decision(
            outcome=Outcome.UNLOCKED,
            metadata=replace(metadata, state=SourceState.ACTIVE),
            needs_prompt=True,
            reason="no applicable upstream change",
        )
    apply = ApplyKind.SIMPLE if kind is ChangeKind.SIMPLE_VERSION_CHANGE else ApplyKind.WHOLESALE
    return Decision(
        outcome=Outcome.UPDATED,
        metadata=replace(_accepted(subject, now=context.now), state=SourceState.ACTIVE),
        apply=apply,
        needs_prompt=True,
        reason=f"{kind} while {metadata.effective_state}",
    )


def available_choices(decision: Decision, *, mode: RunMode) -> tuple[Choice, ...]:
    if mode is RunMode.PROCESS_LOCKS:
        if decision.apply is ApplyKind.NONE:
            return (Choice.UNLOCK, Choice.SKIP, Choice.QUIT)
        return (Choice.ACCEPT, Choice.UNLOCK, Choice.SKIP, Choice.QUIT)
    return (Choice.ACCEPT, Choice.FREEZE, Choice.SKIP, Choice.QUIT)


def resolve_choice(
    decision: Decision,
    choice: Choice,
    *,
    original: SourceMetadata,
    now: datetime,
) -> Decision:
    """Turn a prompted decision into a final one according to the operator's choice."""

    if choice is Choice.QUIT:
        raise RunAborted("Run aborted by user")
    if choice is Choice.ACCEPT:
        return replace(decision, needs_prompt=False)
    if choice is Choice.FREEZE:
        return Decision(
            outcome=Outcome.LOCKED,
            metadata=replace(_record_detection(original, now=now), state=SourceState.FROZEN),
            reason="frozen by user",
        )
    if choice is Choice.UNLOCK:
        return Decision(
            outcome=Outcome.UNLOCKED,
            metadata=replace(original, state=SourceState.ACTIVE),
            reason="unlocked by user",
        )
    # a lock review without an upstream change has nothing to record
    skipped = original if decision.apply is ApplyKind.NONE else _record_detection(original, now=now)
    return Decision(outcome=Outcome.SKIPPED, metadata=skipped, reason="skipped by user")


def _is_regression(subject: PolicySubject, *, deep: bool) -> bool:
    if is_regression(subject.local_version, subject.remote_version):
        return True
    return not deep and compare_versions(subject.remote_version, subject.local_version) == 0


def _lock(subject: PolicySubject, state: SourceState, *, now: datetime) -> Decision:
    resolution = subject.resolution
    metadata = subject.metadata.with_accepted_source(resolution.date, resolution.hash)
    return Decision(
        outcome=Outcome.LOCKED,
        metadata=replace(metadata, state=state, last_change_found=now),
        reason="; ".join(subject.classification.reasons) or str(state),
    )


def _accepted(subject: PolicySubject, *, now: datetime) -> SourceMetadata:
    resolution = subject.resolution
    metadata = subject.metadata.with_accepted_source(resolution.date, resolution.hash)
    return replace(metadata, last_change_found=now, deferred_update_found=None)


def _record_detection(metadata: SourceMetadata, *, now: datetime) -> SourceMetadata:
    """Note a change that was seen but not applied, once per pending change."""

    if metadata.deferred_update_found is not None:
        return metadata
    return replace(metadata, last_change_found=now, deferred_update_found=now)


__all__ = [
    "PolicySubject",
    "available_choices",
    "decide",
    "decide_unchanged",
    "resolve_choice",
    "review_lock",
]
