"""Unit tests for kasten.store.Kasten."""

import io
import json
import uuid
from typing import NamedTuple
from uuid import UUID

import pytest

from kasten.errors import NoteExistsError, NoteNotFoundError, SerializationError, StoreIOError
from kasten.note import Note
from kasten.store import Kasten


class Ids(NamedTuple):
    a: UUID
    b: UUID


@pytest.fixture()
def kasten() -> Kasten:
    """Store with A -> B."""
    k = Kasten()
    a = Note.create("A")
    b = Note.create("B")
    k.add_note(a, [])
    k.add_note(b, [a.id])
    return k


@pytest.fixture()
def ids(kasten: Kasten) -> Ids:
    return Ids(*kasten.ids())


def _round_trip(kasten: Kasten) -> Kasten:
    buf = io.BytesIO()
    kasten.export_to(buf)
    buf.seek(0)
    return Kasten.import_from(buf)


# ---------------------------------------------------------------------------
# add_note
# ---------------------------------------------------------------------------


class TestAddNote:
    def test_add_root_to_empty_store(self):
        k = Kasten()
        note = Note.create("root")
        k.add_note(note, [])
        assert k.resolve_node_index(note.id) == 0
        assert note.id in k
        assert len(k) == 1

    def test_missing_parent_rejected_without_mutation(self, kasten: Kasten):
        nodes, edges = kasten.node_count, kasten.edge_count
        note = Note.create("orphan")
        with pytest.raises(NoteNotFoundError):
            kasten.add_note(note, [uuid.uuid4()])
        assert (kasten.node_count, kasten.edge_count) == (nodes, edges)
        assert note.id not in kasten
        assert note.id not in kasten.meta_data
        assert not kasten.is_cached(note.id)

    def test_partial_parents_rejected_entirely(self, kasten: Kasten, ids: Ids):
        missing = uuid.uuid4()
        edges = kasten.edge_count
        with pytest.raises(NoteNotFoundError) as info:
            kasten.add_note(Note.create("c"), [ids.a, missing, ids.b])
        assert info.value.ids == [missing]
        assert kasten.edge_count == edges
        assert kasten.node_count == 2

    def test_duplicate_id_rejected(self):
        k = Kasten()
        parent = Note.create("p")
        k.add_note(parent, [])
        note = Note.create("n")
        k.add_note(note, [parent.id])
        with pytest.raises(NoteExistsError):
            k.add_note(note, [])
        assert (k.node_count, k.edge_count) == (2, 1)

    def test_duplicate_checked_before_parents(self, kasten: Kasten, ids: Ids):
        note = kasten.get_note(ids.a)
        with pytest.raises(NoteExistsError):
            kasten.add_note(note, [uuid.uuid4()])

    def test_multiple_parents(self, kasten: Kasten, ids: Ids):
        c = Note.create("C")
        kasten.add_note(c, [ids.a, ids.b])
        assert set(kasten.edges()) == {(ids.a, ids.b), (ids.a, c.id), (ids.b, c.id)}
        assert set(kasten.parents(c.id)) == {ids.a, ids.b}

    def test_edges_carry_placeholder_weight(self, kasten: Kasten, ids: Ids):
        src = kasten.resolve_node_index(ids.a)
        dst = kasten.resolve_node_index(ids.b)
        assert kasten.graph.edges[src, dst, 0]["weight"] == 0

    def test_metadata_indexed(self, kasten: Kasten, ids: Ids):
        assert kasten.meta_data[ids.b].title == "B"

    def test_repeated_parent_adds_one_edge_each(self, kasten: Kasten, ids: Ids):
        c = Note.create("C")
        kasten.add_note(c, [ids.a, ids.a])
        assert kasten.edge_count == 3
        assert kasten.edges().count((ids.a, c.id)) == 2
        assert _round_trip(kasten).edge_count == 3


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


class TestLookups:
    def test_resolve_unknown_raises(self, kasten: Kasten):
        with pytest.raises(NoteNotFoundError):
            kasten.resolve_node_index(uuid.uuid4())

    def test_handles_follow_insertion_order(self, kasten: Kasten, ids: Ids):
        assert kasten.resolve_node_index(ids.a) == 0
        assert kasten.resolve_node_index(ids.b) == 1
        assert kasten.ids() == [ids.a, ids.b]

    def test_children_and_roots(self, kasten: Kasten, ids: Ids):
        assert kasten.children(ids.a) == [ids.b]
        assert kasten.children(ids.b) == []
        assert kasten.roots() == [ids.a]

    def test_get_note_returns_copy(self, kasten: Kasten, ids: Ids):
        note = kasten.get_note(ids.a)
        note.update_body("changed")
        assert kasten.get_note(ids.a).body == "A"

    def test_get_uncached_note_raises(self, kasten: Kasten, ids: Ids):
        restored = _round_trip(kasten)
        assert ids.a in restored
        with pytest.raises(NoteNotFoundError):
            restored.get_note(ids.a)

    def test_meta_data_is_read_only(self, kasten: Kasten):
        with pytest.raises(TypeError):
            kasten.meta_data[uuid.uuid4()] = None


# ---------------------------------------------------------------------------
# update_note / cache
# ---------------------------------------------------------------------------


class TestUpdateNote:
    def test_overwrites_cache_and_metadata(self, kasten: Kasten, ids: Ids):
        note = kasten.get_note(ids.a)
        note.update_body("A prime\nbody")
        kasten.update_note(note)
        assert kasten.get_note(ids.a).body == "A prime\nbody"
        assert kasten.meta_data[ids.a].title == "A prime"

    def test_upsert_without_graph_node(self, kasten: Kasten):
        stray = Note.create("stray")
        kasten.update_note(stray)
        assert kasten.get_note(stray.id).body == "stray"
        assert stray.id not in kasten
        assert kasten.node_count == 2

    def test_cache_note_requires_graph_node(self, kasten: Kasten):
        with pytest.raises(NoteNotFoundError):
            kasten.cache_note(Note.create("stray"))

    def test_dirty_notes_and_mark_clean(self, kasten: Kasten, ids: Ids):
        assert {n.id for n in kasten.dirty_notes()} == {ids.a, ids.b}
        kasten.mark_clean()
        assert list(kasten.dirty_notes()) == []


# ---------------------------------------------------------------------------
# Import / export
# ---------------------------------------------------------------------------


class TestImportExport:
    def test_round_trip_preserves_index(self, kasten: Kasten, ids: Ids):
        c = Note.create("C")
        kasten.add_note(c, [ids.a, ids.b])
        restored = _round_trip(kasten)
        assert restored.ids() == kasten.ids()
        assert set(restored.edges()) == set(kasten.edges())
        assert dict(restored.meta_data) == dict(kasten.meta_data)

    def test_note_cache_not_exported(self, kasten: Kasten, ids: Ids):
        restored = _round_trip(kasten)
        assert not restored.is_cached(ids.a)
        assert list(restored.dirty_notes()) == []

    def test_bodies_absent_from_index(self, kasten: Kasten, ids: Ids):
        kasten.update_note(Note(kasten.get_note(ids.a).meta_data, "A\nsecret body"))
        assert b"secret body" not in kasten.serialize()

    def test_empty_store_round_trip(self):
        restored = _round_trip(Kasten())
        assert len(restored) == 0
        assert restored.edges() == []

    def test_import_then_add(self, kasten: Kasten, ids: Ids):
        restored = _round_trip(kasten)
        c = Note.create("C")
        restored.add_note(c, [ids.b])
        assert restored.resolve_node_index(c.id) == 2
        assert restored.parents(c.id) == [ids.b]

    def test_upserted_stray_metadata_not_exported(self, kasten: Kasten, ids: Ids):
        stray = Note.create("stray")
        kasten.update_note(stray)
        restored = _round_trip(kasten)
        assert stray.id not in restored.meta_data
        assert set(restored.meta_data) == {ids.a, ids.b}

    def test_export_write_failure(self, kasten: Kasten):
        class Broken(io.BytesIO):
            name = "broken-stream"

            def write(self, data):
                raise OSError("disk full")

        with pytest.raises(StoreIOError) as info:
            kasten.export_to(Broken())
        assert info.value.path.name == "broken-stream"

    @pytest.mark.parametrize(
        "payload",
        [
            b"",
            b"{",
            b"[]",
            b'{"graph": {"nodes": [], "edges": []}}',
            b'{"graph": {"nodes": "x", "edges": []}, "meta_data": {}}',
            b'{"graph": {"nodes": ["not-a-uuid"], "edges": []}, "meta_data": {}}',
        ],
    )
    def test_malformed_index_raises(self, payload):
        with pytest.raises(SerializationError):
            Kasten.deserialize(payload)

    def _index(self, kasten: Kasten) -> dict:
        return json.loads(kasten.serialize())

    def test_edge_to_unknown_node_raises(self, kasten: Kasten):
        raw = self._index(kasten)
        raw["graph"]["edges"].append([0, 7, 0])
        with pytest.raises(SerializationError):
            Kasten.from_dict(raw)

    def test_cycle_raises(self, kasten: Kasten):
        raw = self._index(kasten)
        raw["graph"]["edges"].append([1, 0, 0])
        with pytest.raises(SerializationError, match="cycle"):
            Kasten.from_dict(raw)

    def test_duplicate_node_raises(self, kasten: Kasten):
        raw = self._index(kasten)
        raw["graph"]["nodes"].append(raw["graph"]["nodes"][0])
        with pytest.raises(SerializationError, match="Duplicate"):
            Kasten.from_dict(raw)

    def test_metadata_without_node_raises(self, kasten: Kasten):
        raw = self._index(kasten)
        stray = Note.create("stray").meta_data
        raw["meta_data"][str(stray.id)] = stray.to_dict()
        with pytest.raises(SerializationError):
            Kasten.from_dict(raw)

    def test_node_without_metadata_raises(self, kasten: Kasten, ids: Ids):
        raw = self._index(kasten)
        del raw["meta_data"][str(ids.a)]
        with pytest.raises(SerializationError):
            Kasten.from_dict(raw)


# ---------------------------------------------------------------------------
# Picker entries / DOT
# ---------------------------------------------------------------------------


class TestRendering:
    def test_picker_entries_oldest_first(self, kasten: Kasten, ids: Ids):
        entries = kasten.picker_entries()
        assert len(entries) == 2
        assert entries[0].startswith("A - ")
        assert entries[1].endswith(str(ids.b))

    def test_render_graph(self, kasten: Kasten, ids: Ids):
        dot = kasten.render_graph()
        assert dot.startswith("digraph {\n")
        assert f'    0 [ label = "{ids.a}" ]' in dot
        assert f'    1 [ label = "{ids.b}" ]' in dot
        assert "    0 -> 1 [ ]" in dot
        assert dot.endswith("}\n")

    def test_render_empty_graph(self):
        assert Kasten().render_graph() == "digraph {\n}\n"
