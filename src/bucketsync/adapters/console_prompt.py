"""Terminal implementation of the decision prompt."""

from __future__ import annotations

from typing import TYPE_CHECKING

from bucketsync.domain.ports import Choice

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence


class ConsolePrompt:
    """Ask on stdin; each choice can be picked by its first letter."""

    def __init__(
        self,
        *,
        reader: Callable[[str], str] = input,
        writer: Callable[[str], None] = print,
    ) -> None:
        self._read = reader
        self._write = writer

    def __call__(self, manifest_name: str, summary: str, choices: Sequence[Choice]) -> Choice:
        options = {choice.value[0]: choice for choice in choices}
        options.update({choice.value: choice for choice in choices})
        legend = "/".join(f"[{choice.value[0]}]{choice.value[1:]}" for choice in choices)
        self._write(summary)
        while True:
            try:
                answer = self._read(f"{manifest_name}: {legend}? ").strip().lower()
            except EOFError:
                return Choice.QUIT
            if answer in options:
                return options[answer]
            self._write(f"Please answer one of: {legend}")


__all__ = ["ConsolePrompt"]
