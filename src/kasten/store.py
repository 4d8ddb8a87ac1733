"""Kasten: the link graph, metadata index and note cache.

The graph is a :class:`networkx.MultiDiGraph` whose nodes are integer handles
assigned in insertion order.  Each node carries the note id as its ``id``
attribute; edges run from a parent note to the note created below it and
carry a constant ``weight`` of ``0``.  Notes only ever gain parents at
insertion time, and parents must already exist, so the graph stays acyclic.

Persisted index (``db``)::

    {
      "graph": {"nodes": ["<uuid>", ...], "edges": [[0, 1, 0], ...]},
      "meta_data": {"<uuid>": {"id": ..., "title": ..., "creation_date": ...}}
    }

Edges reference nodes by their position in ``nodes``.  Note bodies are not
part of the index; each lives in its own file (see :mod:`kasten.directory`).
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from types import MappingProxyType
from typing import IO, Any
from uuid import UUID

import networkx as nx

from kasten.errors import NoteExistsError, NoteNotFoundError, SerializationError, StoreIOError
from kasten.note import MetaData, Note

#: Placeholder payload carried by every edge.
EDGE_WEIGHT = 0


class Kasten:
    """In-memory note store enforcing link integrity."""

    def __init__(self) -> None:
        self.graph: nx.MultiDiGraph = nx.MultiDiGraph()
        self._handles: dict[UUID, int] = {}
        self._meta_data: dict[UUID, MetaData] = {}
        self._notes: dict[UUID, Note] = {}

    # ------------------------------------------------------------------
    # Graph membership
    # ------------------------------------------------------------------

    def resolve_node_index(self, id: UUID) -> int:
        """Return the graph handle for *id*, or raise :class:`NoteNotFoundError`."""
        try:
            return self._handles[id]
        except KeyError:
            raise NoteNotFoundError(id) from None

    def __contains__(self, id: object) -> bool:
        return id in self._handles

    def __len__(self) -> int:
        return len(self._handles)

    @property
    def node_count(self) -> int:
        return self.graph.number_of_nodes()

    @property
    def edge_count(self) -> int:
        return self.graph.number_of_edges()

    def ids(self) -> list[UUID]:
        """Return every note id in insertion order."""
        return list(self._handles)

    def edges(self) -> list[tuple[UUID, UUID]]:
        """Return ``(parent_id, child_id)`` pairs for every link."""
        ids = self.graph.nodes
        return [(ids[src]["id"], ids[dst]["id"]) for src, dst in self.graph.edges()]

    def parents(self, id: UUID) -> list[UUID]:
        handle = self.resolve_node_index(id)
        return [self.graph.nodes[h]["id"] for h in self.graph.predecessors(handle)]

    def children(self, id: UUID) -> list[UUID]:
        handle = self.resolve_node_index(id)
        return [self.graph.nodes[h]["id"] for h in self.graph.successors(handle)]

    def roots(self) -> list[UUID]:
        """Return the ids of notes that have no parent."""
        return [data["id"] for h, data in self.graph.nodes(data=True) if self.graph.in_degree(h) == 0]

    # ------------------------------------------------------------------
    # Insertion / update
    # ------------------------------------------------------------------

    def add_note(self, note: Note, parents: Iterable[UUID] = ()) -> None:
        """Insert *note* below every id in *parents*.

        Nothing is mutated unless the note id is new and every parent exists.
        """
        if note.id in self._handles:
            raise NoteExistsError(note.id)

        parent_handles: list[int] = []
        missing: list[UUID] = []
        for parent in parents:
            handle = self._handles.get(parent)
            if handle is None:
                missing.append(parent)
            else:
                parent_handles.append(handle)
        if missing:
            raise NoteNotFoundError(*missing)

        handle = self.graph.number_of_nodes()
        self.graph.add_node(handle, id=note.id)
        # one edge per listed parent, repeats included
        for parent_handle in parent_handles:
            self.graph.add_edge(parent_handle, handle, weight=EDGE_WEIGHT)
        self._handles[note.id] = handle
        self._notes[note.id] = note
        self._meta_data[note.id] = note.meta_data

    def update_note(self, note: Note) -> None:
        """Overwrite the cached note and metadata entry for ``note.id``.

        This is an upsert: no graph membership check is made, so callers must
        only pass notes whose ids came from this store.
        """
        self._notes[note.id] = note
        self._meta_data[note.id] = note.meta_data

    # ------------------------------------------------------------------
    # Note cache
    # ------------------------------------------------------------------

    def get_note(self, id: UUID) -> Note:
        """Return a copy of the cached note; uncached notes count as missing."""
        try:
            return self._notes[id].copy()
        except KeyError:
            raise NoteNotFoundError(id) from None

    def is_cached(self, id: UUID) -> bool:
        return id in self._notes

    def cache_note(self, note: Note) -> None:
        """Put a note read from disk into the cache without touching its dirty flag."""
        self.resolve_node_index(note.id)
        self._notes[note.id] = note

    def dirty_notes(self) -> Iterator[Note]:
        return (note for note in self._notes.values() if note.dirty)

    def mark_clean(self, notes: Iterable[Note] | None = None) -> None:
        """Reset the dirty flag of *notes* (all cached notes by default)."""
        for note in self._notes.values() if notes is None else notes:
            note.dirty = False

    # ------------------------------------------------------------------
    # Metadata index
    # ------------------------------------------------------------------

    @property
    def meta_data(self) -> Mapping[UUID, MetaData]:
        return MappingProxyType(self._meta_data)

    def picker_entries(self) -> list[str]:
        """Return one picker line per known note, oldest first."""
        entries = sorted(self._meta_data.values(), key=lambda m: m.creation_date)
        return [meta.picker_line() for meta in entries]

    # ------------------------------------------------------------------
    # Import / export
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        nodes = [self.graph.nodes[h]["id"] for h in range(self.graph.number_of_nodes())]
        edges = [[src, dst, data.get("weight", EDGE_WEIGHT)] for src, dst, data in self.graph.edges(data=True)]
        return {
            "graph": {"nodes": [str(id) for id in nodes], "edges": edges},
            # upserted entries without a graph node stay in memory only
            "meta_data": {
                str(id): meta.to_dict() for id, meta in self._meta_data.items() if id in self._handles
            },
        }

    def serialize(self) -> bytes:
        try:
            return json.dumps(self.to_dict(), ensure_ascii=False).encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise SerializationError(f"Could not encode index: {exc}") from exc

    def export_to(self, stream: IO[bytes]) -> None:
        """Write the graph and metadata index (never note bodies) to *stream*."""
        payload = self.serialize()
        try:
            stream.write(payload)
        except OSError as exc:
            raise StoreIOError(getattr(stream, "name", "<stream>"), str(exc)) from exc

    @classmethod
    def import_from(cls, stream: IO[bytes]) -> "Kasten":
        """Read an index written by :meth:`export_to`; the note cache starts empty."""
        try:
            data = stream.read()
        except OSError as exc:
            raise StoreIOError(getattr(stream, "name", "<stream>"), str(exc)) from exc
        return cls.deserialize(data)

    @classmethod
    def deserialize(cls, data: bytes | str) -> "Kasten":
        try:
            raw = json.loads(data)
        except (UnicodeDecodeError, ValueError) as exc:
            raise SerializationError(f"Invalid index encoding: {exc}") from exc
        return cls.from_dict(raw)

    @classmethod
    def from_dict(cls, raw: Any) -> "Kasten":
        if not isinstance(raw, dict):
            raise SerializationError("Invalid index: expected an object")
        graph = raw.get("graph")
        meta_data = raw.get("meta_data")
        if not isinstance(graph, dict) or not isinstance(meta_data, dict):
            raise SerializationError("Invalid index: 'graph' and 'meta_data' objects are required")
        nodes = graph.get("nodes")
        edges = graph.get("edges")
        if not isinstance(nodes, list) or not isinstance(edges, list):
            raise SerializationError("Invalid index: graph needs 'nodes' and 'edges' lists")

        kasten = cls()
        for handle, value in enumerate(nodes):
            try:
                id = UUID(value)
            except (TypeError, ValueError, AttributeError) as exc:
                raise SerializationError(f"Invalid node id {value!r}") from exc
            if id in kasten._handles:
                raise SerializationError(f"Duplicate node id {id}")
            kasten.graph.add_node(handle, id=id)
            kasten._handles[id] = handle

        for edge in edges:
            if not isinstance(edge, list) or len(edge) != 3 or not all(type(v) is int for v in edge[:2]):
                raise SerializationError(f"Invalid edge {edge!r}")
            src, dst, weight = edge
            if not (0 <= src < len(nodes) and 0 <= dst < len(nodes)):
                raise SerializationError(f"Edge {edge!r} references an unknown node")
            kasten.graph.add_edge(src, dst, weight=weight)
        if not nx.is_directed_acyclic_graph(kasten.graph):
            raise SerializationError("Invalid index: the link graph contains a cycle")

        for key, value in meta_data.items():
            if not isinstance(value, dict):
                raise SerializationError(f"Invalid metadata entry for {key!r}")
            meta = MetaData.from_dict(value)
            if str(meta.id) != key:
                raise SerializationError(f"Metadata key {key!r} does not match id {meta.id}")
            if meta.id not in kasten._handles:
                raise SerializationError(f"Metadata for {meta.id} has no graph node")
            kasten._meta_data[meta.id] = meta
        if len(kasten._meta_data) != len(kasten._handles):
            raise SerializationError("Invalid index: every graph node needs a metadata entry")
        return kasten

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def render_graph(self) -> str:
        """Return the link graph as Graphviz DOT text, labelled by note id."""
        lines = ["digraph {"]
        for handle, data in self.graph.nodes(data=True):
            lines.append(f'    {handle} [ label = "{data["id"]}" ]')
        for src, dst in self.graph.edges():
            lines.append(f"    {src} -> {dst} [ ]")
        lines.append("}")
        return "\n".join(lines) + "\n"
