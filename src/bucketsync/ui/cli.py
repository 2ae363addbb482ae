from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from bucketsync.adapters.upstream import UpstreamManifestClient
from bucketsync.app import reconcile_bucket
from bucketsync.config import (
    ConfigurationError,
    configure_logging,
    get_reconcile_config,
    get_upstream_config,
)
from bucketsync.domain.reconciliation import RunMode

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

log = logging.getLogger(__name__)

COMMANDS: dict[str, tuple[RunMode, str]] = {
    "auto": (RunMode.AUTOMATIC, "Apply upstream changes without asking"),
    "interactive": (RunMode.INTERACTIVE, "Ask before applying each upstream change"),
    "pending": (RunMode.LIST_PENDING, "List manifests whose upstream source moved"),
    "manual": (RunMode.LIST_MANUAL, "List manual and deprecated manifests"),
    "locks": (RunMode.LIST_LOCKS, "List locked or frozen manifests"),
    "process-locks": (RunMode.PROCESS_LOCKS, "Review locked manifests one by one"),
}


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--bucket-dir",
        type=Path,
        help="Directory holding the local manifests (defaults to BUCKETSYNC_BUCKET_DIR)",
    )
    common.add_argument(
        "--source-root",
        type=Path,
        help="Root that relative source paths resolve against (defaults to the cwd)",
    )
    common.add_argument(
        "--pattern",
        type=str,
        help="Only process manifests whose name matches this glob",
    )
    common.add_argument(
        "--deep",
        action="store_true",
        help="Compare whole manifests instead of versions only",
    )
    common.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    parser = argparse.ArgumentParser(description="Keep a Scoop bucket in sync with its upstreams")
    subparsers = parser.add_subparsers(dest="command", required=True)
    for command, (_mode, help_text) in COMMANDS.items():
        subparsers.add_parser(command, help=help_text, parents=[common])
    return parser.parse_args(list(argv))


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        mode, _help = COMMANDS[parsed_args.command]
        config = get_reconcile_config(
            bucket_dir=parsed_args.bucket_dir,
            source_root=parsed_args.source_root,
        )
        if not config.bucket_dir.is_dir():
            msg = f"Bucket directory does not exist: {config.bucket_dir}"
            raise ValueError(msg)  # noqa: TRY301
        fetcher = UpstreamManifestClient(config=get_upstream_config())
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        summary = reconcile_bucket(
            mode,
            pattern=parsed_args.pattern,
            deep=parsed_args.deep,
            config=config,
            fetcher=fetcher,
        )
    except Exception:
        log.exception("Fatal error during reconciliation")
        sys.exit(1)

    message = summary.commit_message()
    if message is not None:
        log.debug("Commit message:\n%s", message)
    if summary.aborted:
        log.info("Run aborted by user")


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
