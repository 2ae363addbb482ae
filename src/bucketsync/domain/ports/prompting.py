"""Ports for interactive decisions."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Sequence


class Choice(StrEnum):
    ACCEPT = "accept"
    FREEZE = "freeze"
    UNLOCK = "unlock"
    SKIP = "skip"
    QUIT = "quit"


@runtime_checkable
class DecisionPrompt(Protocol):
    """Ask the operator how to handle one pending change."""

    def __call__(self, manifest_name: str, summary: str, choices: Sequence[Choice]) -> Choice: ...


__all__ = ["Choice", "DecisionPrompt"]
