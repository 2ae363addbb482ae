from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import pytest

from bucketsync.domain.model import Manifest
from bucketsync.domain.ports import Choice
from bucketsync.domain.reconciliation import Outcome, RunMode
from bucketsync.domain.reconciliation.engine import render_diff
from bucketsync.domain.time_windows import format_timestamp
from tests.helpers.reconciliation import (
    NOW,
    SOURCE_DATE,
    FakeFetcher,
    FakeSourceHistory,
    ScriptedPrompt,
    Workspace,
    days,
    make_context,
)

if TYPE_CHECKING:
    from bucketsync.domain.reconciliation import RunSummary

URL = "https://example.org/bucket/app.json"
LOCAL: dict[str, Any] = {"version": "1.0", "url": "https://x.example/1.0.exe", "hash": "aaa"}
REMOTE: dict[str, Any] = {"version": "1.1", "url": "https://x.example/1.1.exe", "hash": "bbb"}


def _setup(
    workspace: Workspace,
    fetcher: FakeFetcher,
    *,
    name: str = "app",
    local: dict[str, Any] | None = None,
    remote: dict[str, Any] | None = None,
    **meta: str,
) -> None:
    remote_body = REMOTE if remote is None else remote
    workspace.write_upstream(f"{name}.json", remote_body)
    url = f"https://example.org/bucket/{name}.json"
    fetcher.bodies[url] = remote_body
    metadata = {"source": f"{name}.json", "sourceUrl": url, **meta}
    workspace.write_manifest(name, LOCAL if local is None else local, meta=metadata)


def _outcomes(summary: RunSummary) -> dict[str, Outcome]:
    return {report.name: report.outcome for report in summary.reports}


def test_simple_version_change_is_applied(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher)
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    document = workspace.read_document("app")
    assert document["version"] == "1.1"
    assert document["url"] == "https://x.example/1.1.exe"
    assert document["hash"] == "bbb"
    metadata = workspace.read_metadata("app")
    token = history.content_id(workspace.source_root / "app.json")
    assert metadata["sourceHash"] == token
    assert metadata["sourceLastUpdated"] == format_timestamp(SOURCE_DATE)
    assert metadata["sourceLastChangeFound"] == format_timestamp(NOW)
    assert metadata["sourceState"] == "active"
    assert _outcomes(summary) == {"app": Outcome.UPDATED}
    assert summary.written == ["app"]
    assert repository.saved == ["app"]
    assert summary.commit_message() == "1 packages updated: app\n\n\tapp - 1.0 -> 1.1\n"


def test_second_run_is_idempotent_and_skips_fetch(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher)
    engine, repository = workspace.engine(fetcher=fetcher, history=history)
    engine.run(make_context())
    first = (workspace.bucket_dir / "app.json").read_text(encoding="utf-8")
    date_calls = history.date_calls

    summary = engine.run(make_context(now=NOW + days(1)))

    assert _outcomes(summary) == {"app": Outcome.UP_TO_DATE}
    assert fetcher.calls == [URL]
    assert history.date_calls == date_calls
    assert repository.saved == ["app"]
    assert (workspace.bucket_dir / "app.json").read_text(encoding="utf-8") == first


def test_deep_mode_bypasses_the_unchanged_source_shortcut(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher)
    engine, _ = workspace.engine(fetcher=fetcher, history=history)
    engine.run(make_context())

    summary = engine.run(make_context(deep=True))

    assert _outcomes(summary) == {"app": Outcome.UP_TO_DATE}
    assert fetcher.calls == [URL, URL]


def test_unchanged_version_records_source_identity_once(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, remote=dict(LOCAL))
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())
    engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.UP_TO_DATE}
    assert workspace.read_metadata("app")["sourceLastUpdated"] == format_timestamp(SOURCE_DATE)
    assert "sourceLastChangeFound" not in workspace.read_metadata("app")
    assert repository.saved == ["app"]
    assert fetcher.calls == [URL]


def test_version_regression_halts_without_writing(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    local = {**LOCAL, "version": "2.0"}
    _setup(workspace, fetcher, local=local, remote={**REMOTE, "version": "1.9"})
    before = (workspace.bucket_dir / "app.json").read_text(encoding="utf-8")
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.HALTED}
    assert repository.saved == []
    assert (workspace.bucket_dir / "app.json").read_text(encoding="utf-8") == before


def test_license_change_locks_even_inside_timing_windows(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    history.default_date = NOW - days(1)
    _setup(
        workspace,
        fetcher,
        local={**LOCAL, "license": "MIT"},
        remote={**REMOTE, "license": {"identifier": "GPL-3.0-only"}},
        sourceDelayDays="7",
        sourceUpdateMinimumDays="30",
        sourceLastChangeFound=format_timestamp(NOW - days(2)),
    )
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.LOCKED}
    document = workspace.read_document("app")
    assert document["version"] == "1.0"
    assert document["license"] == "MIT"
    metadata = workspace.read_metadata("app")
    assert metadata["sourceState"] == "license-change-lock"
    assert metadata["sourceLastUpdated"] == format_timestamp(NOW - days(1))
    assert metadata["sourceHash"] == history.content_id(workspace.source_root / "app.json")
    assert metadata["sourceLastChangeFound"] == format_timestamp(NOW)


def test_domain_change_locks_manifest(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(
        workspace,
        fetcher,
        local={**LOCAL, "homepage": "https://github.com/old-owner/app"},
        remote={**REMOTE, "homepage": "https://github.com/new-owner/app"},
    )
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.LOCKED}
    assert workspace.read_document("app")["version"] == "1.0"
    assert workspace.read_metadata("app")["sourceState"] == "domain-change-lock"


def test_locked_manifest_is_never_modified_on_later_runs(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, sourceState="license-change-lock")
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    first = engine.run(make_context())
    text = (workspace.bucket_dir / "app.json").read_text(encoding="utf-8")
    second = engine.run(make_context(now=NOW + days(3)))

    assert _outcomes(first) == _outcomes(second) == {"app": Outcome.LOCKED}
    assert workspace.read_document("app")["version"] == "1.0"
    assert (workspace.bucket_dir / "app.json").read_text(encoding="utf-8") == text


def test_delay_gate_defers_then_releases(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    history.default_date = NOW - days(1)
    _setup(workspace, fetcher, sourceDelayDays="7")
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    first = engine.run(make_context())
    assert _outcomes(first) == {"app": Outcome.DEFERRED}
    assert workspace.read_document("app")["version"] == "1.0"
    assert workspace.read_metadata("app")["sourceDeferredUpdateFound"] == format_timestamp(NOW)

    second = engine.run(make_context(now=NOW + days(3)))
    assert _outcomes(second) == {"app": Outcome.DEFERRED}
    assert workspace.read_metadata("app")["sourceDeferredUpdateFound"] == format_timestamp(NOW)
    assert repository.saved == ["app"]

    # upstream moved again inside the window; the marker has aged past it
    history.default_date = NOW + days(5)
    third = engine.run(make_context(now=NOW + days(8)))
    assert _outcomes(third) == {"app": Outcome.UPDATED}
    assert workspace.read_document("app")["version"] == "1.1"
    metadata = workspace.read_metadata("app")
    assert "sourceDeferredUpdateFound" not in metadata
    assert metadata["sourceLastUpdated"] == format_timestamp(NOW + days(5))


def test_minimum_spacing_gate_only_reports(
    workspace: Workspace,
    fetcher: FakeFetcher,
    history: FakeSourceHistory,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO, logger="bucketsync")
    _setup(
        workspace,
        fetcher,
        sourceUpdateMinimumDays="10",
        sourceLastChangeFound=format_timestamp(NOW - days(2)),
    )
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.THROTTLED}
    assert repository.saved == []
    assert '+    "version": "1.1",' in caplog.text


def test_complex_change_applied_wholesale_by_default(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, remote={**REMOTE, "bin": "app.exe"})
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.UPDATED}
    document = workspace.read_document("app")
    assert document["bin"] == "app.exe"
    assert document["version"] == "1.1"


def test_complex_change_flagged_when_auto_apply_disabled(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, remote={**REMOTE, "bin": "app.exe"})
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context(auto_apply_complex=False))
    engine.run(make_context(now=NOW + days(1), auto_apply_complex=False))

    assert _outcomes(summary) == {"app": Outcome.FLAGGED}
    document = workspace.read_document("app")
    assert "bin" not in document
    assert document["version"] == "1.0"
    metadata = workspace.read_metadata("app")
    assert metadata["sourceLastChangeFound"] == format_timestamp(NOW)
    assert metadata["sourceDeferredUpdateFound"] == format_timestamp(NOW)


def test_manual_and_deprecated_manifests_are_never_fetched(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    workspace.write_manifest("tool", LOCAL, meta={"source": "MANUAL"})
    workspace.write_manifest("old", LOCAL, meta={"source": "DEPRECATED"})
    workspace.write_upstream("gone.json", REMOTE)
    workspace.write_manifest("gone", LOCAL, meta={"source": "gone.json", "sourceState": "dead"})
    workspace.write_manifest("bare", LOCAL)
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {
        "bare": Outcome.EXCLUDED,
        "gone": Outcome.EXCLUDED,
        "old": Outcome.EXCLUDED,
        "tool": Outcome.EXCLUDED,
    }
    assert fetcher.calls == []
    assert history.content_calls == 0
    assert repository.saved == []


def test_frozen_manifest_reports_without_touching_body(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, sourceState="frozen")
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.LOCKED}
    assert workspace.read_document("app")["version"] == "1.0"
    metadata = workspace.read_metadata("app")
    assert metadata["sourceState"] == "frozen"
    assert metadata["sourceDeferredUpdateFound"] == format_timestamp(NOW)
    assert "sourceHash" not in metadata


def test_missing_source_file_is_skipped(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    workspace.write_manifest("app", LOCAL, meta={"source": "missing.json", "sourceUrl": URL})
    fetcher.bodies[URL] = REMOTE
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.SKIPPED}
    assert fetcher.calls == []
    assert repository.saved == []


def test_upstream_read_from_source_file_without_url(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    workspace.write_upstream("nested/app.json", REMOTE)
    workspace.write_manifest("app", LOCAL, meta={"source": "nested/app.json"})
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {"app": Outcome.UPDATED}
    assert workspace.read_document("app")["version"] == "1.1"
    assert fetcher.calls == []


def test_failures_are_isolated_per_manifest(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher)
    workspace.write_upstream("broken.json", REMOTE)
    workspace.write_manifest(
        "broken",
        LOCAL,
        meta={"source": "broken.json", "sourceUrl": "https://example.org/missing.json"},
    )
    (workspace.bucket_dir / "garbled.json").write_text("{not json", encoding="utf-8")
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context())

    assert _outcomes(summary) == {
        "garbled": Outcome.ERROR,
        "app": Outcome.UPDATED,
        "broken": Outcome.ERROR,
    }
    assert workspace.read_document("app")["version"] == "1.1"


def test_pattern_limits_the_run(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, name="app")
    _setup(workspace, fetcher, name="zed")
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    summary = engine.run(make_context(), pattern="a*")

    assert _outcomes(summary) == {"app": Outcome.UPDATED}
    assert workspace.read_document("zed")["version"] == "1.0"


def test_interactive_quit_keeps_earlier_changes(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, name="alpha")
    _setup(workspace, fetcher, name="beta")
    _setup(workspace, fetcher, name="gamma")
    prompt = ScriptedPrompt(Choice.ACCEPT, Choice.QUIT)
    engine, repository = workspace.engine(fetcher=fetcher, history=history, prompt=prompt)

    summary = engine.run(make_context(RunMode.INTERACTIVE))

    assert summary.aborted
    assert [name for name, _ in prompt.asked] == ["alpha", "beta"]
    assert prompt.asked[0][1] == (Choice.ACCEPT, Choice.FREEZE, Choice.SKIP, Choice.QUIT)
    assert workspace.read_document("alpha")["version"] == "1.1"
    assert workspace.read_document("beta")["version"] == "1.0"
    assert workspace.read_document("gamma")["version"] == "1.0"
    assert repository.saved == ["alpha"]
    assert _outcomes(summary) == {"alpha": Outcome.UPDATED}


def test_interactive_freeze_and_skip(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, name="alpha")
    _setup(workspace, fetcher, name="beta")
    prompt = ScriptedPrompt(Choice.FREEZE, Choice.SKIP)
    engine, _ = workspace.engine(fetcher=fetcher, history=history, prompt=prompt)

    summary = engine.run(make_context(RunMode.INTERACTIVE))

    assert _outcomes(summary) == {"alpha": Outcome.LOCKED, "beta": Outcome.SKIPPED}
    assert workspace.read_metadata("alpha")["sourceState"] == "frozen"
    assert workspace.read_document("alpha")["version"] == "1.0"
    assert workspace.read_metadata("beta")["sourceDeferredUpdateFound"] == format_timestamp(NOW)
    assert workspace.read_document("beta")["version"] == "1.0"
    assert prompt.summaries[0].startswith("alpha: simple 1.0 -> 1.1 [active]")


def test_prompting_modes_require_a_prompt(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    engine, _ = workspace.engine(fetcher=fetcher, history=history)

    with pytest.raises(ValueError, match="prompt"):
        engine.run(make_context(RunMode.INTERACTIVE))


def test_process_locks_accept_unlocks_and_applies(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, name="alpha", sourceState="frozen")
    _setup(workspace, fetcher, name="beta", sourceState="domain-change-lock")
    _setup(workspace, fetcher, name="gamma", remote=dict(LOCAL), sourceState="frozen")
    _setup(workspace, fetcher, name="plain")
    prompt = ScriptedPrompt(Choice.ACCEPT, Choice.UNLOCK, Choice.UNLOCK)
    engine, _ = workspace.engine(fetcher=fetcher, history=history, prompt=prompt)

    summary = engine.run(make_context(RunMode.PROCESS_LOCKS))

    assert [name for name, _ in prompt.asked] == ["alpha", "beta", "gamma"]
    assert prompt.asked[0][1] == (Choice.ACCEPT, Choice.UNLOCK, Choice.SKIP, Choice.QUIT)
    assert prompt.asked[2][1] == (Choice.UNLOCK, Choice.SKIP, Choice.QUIT)
    assert _outcomes(summary) == {
        "alpha": Outcome.UPDATED,
        "beta": Outcome.UNLOCKED,
        "gamma": Outcome.UNLOCKED,
    }
    assert workspace.read_document("alpha")["version"] == "1.1"
    assert workspace.read_metadata("alpha")["sourceState"] == "active"
    assert workspace.read_document("beta")["version"] == "1.0"
    assert workspace.read_metadata("beta")["sourceState"] == "active"
    assert workspace.read_metadata("gamma")["sourceState"] == "active"
    assert workspace.read_document("plain")["version"] == "1.0"


def test_skipped_lock_review_does_not_release_the_next_upstream_change(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, remote=dict(LOCAL), sourceState="frozen", sourceDelayDays="7")
    prompt = ScriptedPrompt(Choice.SKIP, Choice.UNLOCK)
    engine, repository = workspace.engine(fetcher=fetcher, history=history, prompt=prompt)

    skipped = engine.run(make_context(RunMode.PROCESS_LOCKS))

    assert _outcomes(skipped) == {"app": Outcome.SKIPPED}
    assert repository.saved == []

    later = NOW + days(10)
    engine.run(make_context(RunMode.PROCESS_LOCKS, now=later))
    assert workspace.read_metadata("app")["sourceState"] == "active"
    assert "sourceDeferredUpdateFound" not in workspace.read_metadata("app")

    workspace.write_upstream("app.json", REMOTE)
    fetcher.bodies[URL] = REMOTE
    history.default_date = later
    released = engine.run(make_context(now=later))

    assert _outcomes(released) == {"app": Outcome.DEFERRED}
    assert workspace.read_document("app")["version"] == "1.0"
    assert workspace.read_metadata("app")["sourceDeferredUpdateFound"] == format_timestamp(later)


def test_list_modes_never_write_or_fetch(
    workspace: Workspace, fetcher: FakeFetcher, history: FakeSourceHistory
) -> None:
    _setup(workspace, fetcher, name="moved")
    _setup(
        workspace,
        fetcher,
        name="current",
        sourceLastUpdated=format_timestamp(SOURCE_DATE + days(1)),
    )
    _setup(workspace, fetcher, name="frozen", sourceState="frozen")
    workspace.write_manifest("tool", LOCAL, meta={"source": "MANUAL"})
    engine, repository = workspace.engine(fetcher=fetcher, history=history)

    pending = engine.run(make_context(RunMode.LIST_PENDING))
    locks = engine.run(make_context(RunMode.LIST_LOCKS))
    manual = engine.run(make_context(RunMode.LIST_MANUAL))

    assert _outcomes(pending) == {
        "current": Outcome.CHECKED,
        "frozen": Outcome.PENDING,
        "moved": Outcome.PENDING,
    }
    assert _outcomes(locks) == {"frozen": Outcome.LOCKED}
    assert _outcomes(manual) == {"tool": Outcome.EXCLUDED}
    assert fetcher.calls == []
    assert repository.saved == []


def test_render_diff_shows_version_lines() -> None:
    manifest = Manifest(name="app", body=dict(LOCAL))

    diff = render_diff(manifest, {**REMOTE, "##": ["sourceState: active"]})

    assert '-    "version": "1.0",' in diff
    assert '+    "version": "1.1",' in diff
    assert "sourceState" not in diff
