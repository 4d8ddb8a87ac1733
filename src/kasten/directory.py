"""KastenDirectory: a :class:`Kasten` persisted to a directory.

Layout::

    <root>/
        db          # graph + metadata index, rewritten on every save
        <uuid>      # one JSON file per note, written only while dirty

Note bodies are loaded lazily: opening a directory reads ``db`` only, and
:meth:`KastenDirectory.load_note` pulls individual note files on demand.
"""

from __future__ import annotations

import logging
import tempfile
from collections.abc import Iterable
from pathlib import Path
from uuid import UUID

from kasten.editor import Editor
from kasten.errors import KastenError, SerializationError, StoreIOError
from kasten.note import Note
from kasten.store import Kasten

logger = logging.getLogger(__name__)

INDEX_FILENAME = "db"


class KastenDirectory:
    """A :class:`Kasten` together with the directory it is saved to."""

    def __init__(self, root: Path | str, kasten: Kasten | None = None) -> None:
        self.root = Path(root).expanduser()
        self.kasten = kasten if kasten is not None else Kasten()

    @property
    def index_path(self) -> Path:
        return self.root / INDEX_FILENAME

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @classmethod
    def init(cls, root: Path | str, *, force: bool = False) -> "KastenDirectory":
        """Create an empty store at *root* and write its index."""
        directory = cls(root)
        if directory.index_path.exists() and not force:
            raise KastenError(f"{directory.root} already holds a note store")
        directory.save()
        return directory

    @classmethod
    def open(cls, root: Path | str) -> "KastenDirectory":
        """Load the index at *root*; note bodies stay on disk until requested."""
        directory = cls(root)
        try:
            with open(directory.index_path, "rb") as fh:
                kasten = Kasten.import_from(fh)
        except OSError as exc:
            raise StoreIOError(directory.index_path, exc.strerror or str(exc)) from exc
        directory.kasten = kasten
        return directory

    def save(self) -> list[Path]:
        """Write the index and every dirty note; return the note files written.

        Written notes are marked clean so the next save skips them.
        """
        self._ensure_root()
        self._write(self.index_path, self.kasten.serialize())

        paths: list[Path] = []
        for note in list(self.kasten.dirty_notes()):
            path = self.root / str(note.id)
            self._write(path, note.serialize())
            self.kasten.mark_clean([note])
            paths.append(path)
        logger.debug("saved %s: index + %d note(s)", self.root, len(paths))
        return paths

    def _ensure_root(self) -> None:
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise StoreIOError(self.root, exc.strerror or str(exc)) from exc

    @staticmethod
    def _write(path: Path, payload: bytes) -> None:
        try:
            path.write_bytes(payload)
        except OSError as exc:
            raise StoreIOError(path, exc.strerror or str(exc)) from exc
        logger.debug("wrote %s (%d bytes)", path, len(payload))

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    def note_path(self, id: UUID) -> Path:
        """Return ``<root>/<id>`` for a note that is part of the graph."""
        self.kasten.resolve_node_index(id)
        return self.root / str(id)

    def load_note(self, id: UUID) -> Note:
        """Return the note for *id*, reading its file if it is not cached yet.

        A note that was added but never saved with a body has no file; it is
        rebuilt empty from its metadata.
        """
        path = self.note_path(id)
        if not self.kasten.is_cached(id):
            if path.exists():
                try:
                    payload = path.read_bytes()
                except OSError as exc:
                    raise StoreIOError(path, exc.strerror or str(exc)) from exc
                note = Note.deserialize(payload)
                if note.id != id:
                    raise SerializationError(f"{path} holds note {note.id}")
            else:
                note = Note(meta_data=self.kasten.meta_data[id], body="")
            self.kasten.cache_note(note)
            logger.debug("loaded note %s", id)
        return self.kasten.get_note(id)

    def new_note(self, parents: Iterable[UUID] = (), body: str = "") -> UUID:
        """Create a note below *parents* and return its id (unsaved)."""
        note = Note.create(body)
        self.kasten.add_note(note, list(parents))
        return note.id

    def edit_note(self, id: UUID, editor: Editor) -> Note:
        """Let *editor* change the body of note *id* through a scratch file.

        The updated note replaces the cached one; call :meth:`save` to persist.
        """
        note = self.load_note(id)
        with tempfile.TemporaryDirectory(prefix="kasten-") as scratch:
            path = Path(scratch) / f"{id}.md"
            try:
                path.write_text(note.body, encoding="utf-8")
                editor.edit(path)
                body = path.read_text(encoding="utf-8")
            except UnicodeDecodeError as exc:
                raise SerializationError(f"Edited note {id} is not valid UTF-8") from exc
            except OSError as exc:
                raise StoreIOError(path, exc.strerror or str(exc)) from exc
        note.update_body(body)
        self.kasten.update_note(note)
        return note
