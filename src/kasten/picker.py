"""Picker collaborator: let the user choose notes from their picker lines.

Each known note is offered as ``"<title> - \\u2063<uuid>"``.  The invisible
separator never shows up in typed titles, so the id is recovered by
splitting on its last occurrence.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from collections.abc import Sequence
from typing import Protocol, runtime_checkable
from uuid import UUID

import click

from kasten.errors import PickerError
from kasten.note import PICKER_SEPARATOR

logger = logging.getLogger(__name__)

DEFAULT_PICKER = "fzf"
# fzf: 1 = no match, 130 = interrupted with Esc/Ctrl-C
_NO_SELECTION_CODES = {1, 130}


def parse_picker_line(line: str) -> UUID:
    """Return the note id encoded at the end of a picker line."""
    _, sep, tail = line.rstrip("\r\n").rpartition(PICKER_SEPARATOR)
    if not sep:
        raise PickerError(f"No note id in picker output: {line!r}")
    try:
        return UUID(tail.strip())
    except ValueError as exc:
        raise PickerError(f"Malformed note id in picker output: {line!r}") from exc


@runtime_checkable
class Picker(Protocol):
    def pick(self, entries: list[str], multi: bool = True) -> list[str]: ...


class ExternalPicker:
    """Pipe entries through a fuzzy finder such as ``fzf`` or ``sk``."""

    def __init__(self, command: Sequence[str] | str = DEFAULT_PICKER) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        if not command:
            raise PickerError("Picker command is empty")
        self.command = list(command)

    def pick(self, entries: list[str], multi: bool = True) -> list[str]:
        if not entries:
            return []
        argv = [*self.command, "--multi"] if multi else list(self.command)
        logger.debug("launching picker: %s", argv)
        try:
            proc = subprocess.run(
                argv,
                input="\n".join(entries) + "\n",
                stdout=subprocess.PIPE,
                text=True,
            )
        except FileNotFoundError as exc:
            raise PickerError(f"Picker not found: {self.command[0]}") from exc
        if proc.returncode in _NO_SELECTION_CODES:
            return []
        if proc.returncode != 0:
            raise PickerError(f"Picker exited with status {proc.returncode}")
        return [line for line in proc.stdout.splitlines() if line]


class PromptPicker:
    """Numbered-list fallback for terminals without a fuzzy finder."""

    def pick(self, entries: list[str], multi: bool = True) -> list[str]:
        if not entries:
            return []
        for number, entry in enumerate(entries, start=1):
            click.echo(f"{number:>3}) {entry.replace(PICKER_SEPARATOR, '')}", err=True)
        prompt = "Select notes (comma-separated, empty for none)" if multi else "Select a note"
        answer: str = click.prompt(prompt, default="", show_default=False, err=True)

        chosen: list[str] = []
        for token in answer.replace(",", " ").split():
            try:
                number = int(token)
            except ValueError as exc:
                raise PickerError(f"Not a number: {token!r}") from exc
            if not 1 <= number <= len(entries):
                raise PickerError(f"No entry numbered {number}")
            chosen.append(entries[number - 1])
            if not multi:
                break
        return chosen


def picker_from_name(name: str | None) -> Picker:
    """Map a configured picker name to an implementation."""
    if not name or name == DEFAULT_PICKER:
        return ExternalPicker()
    if name == "prompt":
        return PromptPicker()
    return ExternalPicker(name)
