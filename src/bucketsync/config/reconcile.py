"""Reconciliation run configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import env_flag, env_list, optional_env_var

DEFAULT_BUCKET_DIR = "bucket"


@dataclass(frozen=True, slots=True)
class ReconcileConfig:
    """Where the bucket lives and how unattended runs treat risky changes."""

    bucket_dir: Path
    source_root: Path
    mirror_hosts: tuple[str, ...] = ()
    auto_apply_complex: bool = True


def get_reconcile_config(
    *,
    bucket_dir: Path | None = None,
    source_root: Path | None = None,
) -> ReconcileConfig:
    env_bucket = optional_env_var("BUCKETSYNC_BUCKET_DIR")
    env_root = optional_env_var("BUCKETSYNC_SOURCE_ROOT")
    return ReconcileConfig(
        bucket_dir=bucket_dir or Path(env_bucket or DEFAULT_BUCKET_DIR),
        source_root=source_root or (Path(env_root) if env_root else Path.cwd()),
        mirror_hosts=tuple(host.lower() for host in env_list("BUCKETSYNC_MIRROR_HOSTS")),
        auto_apply_complex=env_flag("BUCKETSYNC_AUTO_APPLY_COMPLEX", default=True),
    )
