"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from bucketsync.adapters.console_prompt import ConsolePrompt
from bucketsync.adapters.git_history import GitSourceHistory
from bucketsync.adapters.manifest_files import JsonManifestRepository
from bucketsync.adapters.upstream import UpstreamManifestClient
from bucketsync.config import get_reconcile_config, get_upstream_config
from bucketsync.domain.reconciliation import (
    ReconciliationContext,
    ReconciliationEngine,
    RunMode,
    RunSummary,
)
from bucketsync.domain.time_windows import utcnow

if TYPE_CHECKING:
    from bucketsync.config import ReconcileConfig
    from bucketsync.domain.ports import (
        DecisionPrompt,
        ManifestRepository,
        RemoteManifestFetcher,
        SourceHistory,
    )
    from bucketsync.domain.time_windows import Clock


log = getLogger(__name__)

_PROMPTING_MODES = (RunMode.INTERACTIVE, RunMode.PROCESS_LOCKS)


def reconcile_bucket(
    mode: RunMode,
    *,
    pattern: str | None = None,
    deep: bool = False,
    config: ReconcileConfig | None = None,
    prompt: DecisionPrompt | None = None,
    fetcher: RemoteManifestFetcher | None = None,
    history: SourceHistory | None = None,
    repository: ManifestRepository | None = None,
    clock: Clock = utcnow,
) -> RunSummary:
    """Reconcile the configured bucket using the configured adapters."""

    effective_config = config or get_reconcile_config()
    effective_repository = repository or JsonManifestRepository(effective_config.bucket_dir)
    effective_fetcher = fetcher or UpstreamManifestClient(config=get_upstream_config())
    effective_prompt = prompt
    if effective_prompt is None and mode in _PROMPTING_MODES:
        effective_prompt = ConsolePrompt()
    owned_history = GitSourceHistory() if history is None else None
    effective_history = history or owned_history

    context = ReconciliationContext(
        now=clock(),
        mode=mode,
        deep=deep,
        auto_apply_complex=effective_config.auto_apply_complex,
        ignored_hosts=frozenset(effective_config.mirror_hosts),
    )
    engine = ReconciliationEngine(
        repository=effective_repository,
        history=effective_history,
        fetcher=effective_fetcher,
        source_root=effective_config.source_root,
        prompt=effective_prompt,
    )
    log.info(
        "Starting %s run: bucket=%s, source_root=%s, pattern=%s, deep=%s",
        mode,
        effective_config.bucket_dir,
        effective_config.source_root,
        pattern,
        deep,
    )
    try:
        summary = engine.run(context, pattern=pattern)
    finally:
        if owned_history is not None:
            owned_history.close()

    for line in summary.summary_lines():
        log.info(line)
    return summary


__all__ = ["reconcile_bucket"]
