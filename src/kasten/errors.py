"""Error hierarchy shared by the store, the directory layer and the CLI."""

from __future__ import annotations

from pathlib import Path
from uuid import UUID


class KastenError(Exception):
    """Base class for every error raised by :mod:`kasten`."""


class NoteExistsError(KastenError):
    """A note with the same identifier is already part of the graph."""

    def __init__(self, id: UUID) -> None:
        super().__init__(f"Note {id} already exists")
        self.id = id


class NoteNotFoundError(KastenError):
    """A referenced note (parent or lookup target) does not exist."""

    def __init__(self, id: UUID | str, *missing: UUID) -> None:
        ids = [id, *missing]
        label = ", ".join(str(i) for i in ids)
        super().__init__(f"Note not found: {label}")
        self.id = id
        self.ids = ids


class SerializationError(KastenError):
    """Structured data could not be encoded or decoded."""


class StoreIOError(KastenError):
    """A filesystem operation on the store directory failed."""

    def __init__(self, path: Path | str, message: str) -> None:
        super().__init__(f"{path}: {message}")
        self.path = Path(path)


class EditorError(KastenError):
    """The external editor could not be launched or exited with an error."""


class PickerError(KastenError):
    """The picker failed or returned text that does not identify a note."""


class ConfigError(KastenError):
    """The configuration file could not be parsed."""
