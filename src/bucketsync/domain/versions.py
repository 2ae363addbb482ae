"""Version ordering for manifest ``version`` strings.

Manifest versions are loosely semantic: ``1.2.3``, ``2024.01.05``, ``7.0.4-12``,
``1.0.0-beta2``, ``v3.1``. Versions are split into numeric and alphabetic
tokens; numeric tokens compare as integers, and pre-release words sort below
the release they precede (``1.0-rc1 < 1.0``).
"""

from __future__ import annotations

import re
from typing import Final, TypeAlias

_TOKEN_RE: Final = re.compile(r"\d+|[A-Za-z]+")

_PRERELEASE_RANK: Final[dict[str, int]] = {
    "dev": 0,
    "snapshot": 0,
    "nightly": 0,
    "a": 1,
    "alpha": 1,
    "b": 2,
    "beta": 2,
    "pre": 3,
    "preview": 3,
    "c": 4,
    "rc": 4,
}

VersionToken: TypeAlias = int | str


def version_tokens(value: str) -> tuple[VersionToken, ...]:
    normalized = value.strip()
    if normalized[:1] in {"v", "V"} and normalized[1:2].isdigit():
        normalized = normalized[1:]
    return tuple(
        int(token) if token.isdigit() else token.lower() for token in _TOKEN_RE.findall(normalized)
    )


def _is_prerelease(token: VersionToken) -> bool:
    return isinstance(token, str) and token in _PRERELEASE_RANK


def _compare_tokens(left: VersionToken, right: VersionToken) -> int:
    if isinstance(left, int) and isinstance(right, int):
        return (left > right) - (left < right)
    if isinstance(left, int):
        return 1
    if isinstance(right, int):
        return -1
    if _is_prerelease(left) and _is_prerelease(right):
        left_rank, right_rank = _PRERELEASE_RANK[left], _PRERELEASE_RANK[right]
        return (left_rank > right_rank) - (left_rank < right_rank)
    if _is_prerelease(left):
        return -1
    if _is_prerelease(right):
        return 1
    return (left > right) - (left < right)


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` sorts before, equal to or after ``right``."""

    left_tokens = version_tokens(left)
    right_tokens = version_tokens(right)
    for left_token, right_token in zip(left_tokens, right_tokens, strict=False):
        result = _compare_tokens(left_token, right_token)
        if result:
            return result

    shorter = min(len(left_tokens), len(right_tokens))
    longer_is_left = len(left_tokens) > len(right_tokens)
    remainder = left_tokens[shorter:] if longer_is_left else right_tokens[shorter:]
    # trailing zeros are padding: 1.0.0-beta is still a pre-release of 1.0
    deciding = next((token for token in remainder if token != 0), None)
    if deciding is None:
        return 0
    longer_is_newer = not _is_prerelease(deciding)
    return 1 if longer_is_newer == longer_is_left else -1


def is_regression(local: str, remote: str) -> bool:
    """Return whether moving from ``local`` to ``remote`` would go backwards."""

    return compare_versions(remote, local) < 0


__all__ = ["compare_versions", "is_regression", "version_tokens"]
