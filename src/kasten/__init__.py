"""kasten: a Zettelkasten of linked notes backed by a directory."""

from kasten.directory import KastenDirectory
from kasten.errors import (
    KastenError,
    NoteExistsError,
    NoteNotFoundError,
    SerializationError,
    StoreIOError,
)
from kasten.note import MetaData, Note
from kasten.store import Kasten

__all__ = [
    "Kasten",
    "KastenDirectory",
    "MetaData",
    "Note",
    "KastenError",
    "NoteExistsError",
    "NoteNotFoundError",
    "SerializationError",
    "StoreIOError",
]
