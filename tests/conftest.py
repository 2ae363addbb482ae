from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from tests.helpers.reconciliation import FakeFetcher, FakeSourceHistory, Workspace

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def workspace(tmp_path: Path) -> Workspace:
    space = Workspace(root=tmp_path)
    space.bucket_dir.mkdir()
    space.source_root.mkdir()
    return space


@pytest.fixture
def history() -> FakeSourceHistory:
    return FakeSourceHistory()


@pytest.fixture
def fetcher() -> FakeFetcher:
    return FakeFetcher()
