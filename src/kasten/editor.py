"""Editor collaborator: hand a file to the user and block until they are done."""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

from kasten.errors import EditorError

logger = logging.getLogger(__name__)

DEFAULT_EDITOR = "vi"


@runtime_checkable
class Editor(Protocol):
    """Anything that can edit the file at *path* in place."""

    def edit(self, path: Path) -> None: ...


class ExternalEditor:
    """Run an external program on the file and wait for it to exit."""

    def __init__(self, command: Sequence[str] | str) -> None:
        if isinstance(command, str):
            command = shlex.split(command)
        if not command:
            raise EditorError("Editor command is empty")
        self.command = list(command)

    def edit(self, path: Path) -> None:
        argv = [*self.command, str(path)]
        logger.debug("launching editor: %s", argv)
        try:
            subprocess.run(argv, check=True)
        except FileNotFoundError as exc:
            raise EditorError(f"Editor not found: {self.command[0]}") from exc
        except subprocess.CalledProcessError as exc:
            raise EditorError(f"Editor exited with status {exc.returncode}") from exc

    def __repr__(self) -> str:
        return f"ExternalEditor({shlex.join(self.command)!r})"


def editor_from_env(environ: dict[str, str] | None = None) -> ExternalEditor:
    """Build an editor from ``$VISUAL``, then ``$EDITOR``, falling back to ``vi``."""
    env = os.environ if environ is None else environ
    command = env.get("VISUAL") or env.get("EDITOR") or DEFAULT_EDITOR
    return ExternalEditor(command)
