"""Tests for the focus session lifecycle."""

import asyncio
import sqlite3
from pathlib import Path

import pytest

from focus_todos.config import Settings
from focus_todos.core.database.schema import get_metadata
from focus_todos.core.ordering.persistence import load_ordering_store, load_settings
from focus_todos.core.session import VAULT_ROOT_KEY, FocusSession, open_session, watch_session
from focus_todos.errors import UnknownItemError
from focus_todos.models.document import DocumentEvent, DocumentEventKind
from focus_todos.models.ordering import Direction, DropPosition, DropZone
from tests.unit.fakes import FakeVault, id_of

FLAT = [
    "Review PR [[Project X]] #work",
    "Write report #work",
    "Draft outline",
    "Collect numbers",
    "Call plumber",
]


def _texts(session: FocusSession) -> list[str]:
    return [i.text for i in session.get_items()]


def _root_texts(session: FocusSession) -> list[str]:
    return [session.find_item(i).text for i in session.root_ids()]  # type: ignore[union-attr]


def _reopen(conn: sqlite3.Connection, vault: FakeVault) -> FocusSession:
    s = FocusSession(conn, vault, settings=Settings(daily_notes_days=0))
    s.load()
    s.refresh()
    return s


def test_refresh_collects_open_items_newest_first(session: FocusSession) -> None:
    assert _texts(session) == FLAT
    tree = session.get_tree()
    assert [n.item.text for n in tree.ungrouped] == FLAT
    assert tree.sections == ()


def test_items_carry_source_metadata(session: FocusSession) -> None:
    review = session.find_item(id_of(session, FLAT[0]))
    assert review is not None
    assert review.source.path == "2026/2026-10-18.md"
    assert review.source.line == 3
    assert review.linked_document == "Project X"
    assert review.tags == ("#work",)


def test_unchanged_documents_are_not_reread(session: FocusSession, vault: FakeVault) -> None:
    reads = len(vault.reads)
    session.refresh()
    assert len(vault.reads) == reads


def test_nesting_persists_across_sessions(
    session: FocusSession, conn: sqlite3.Connection, vault: FakeVault
) -> None:
    assert session.nest_under(id_of(session, "Call plumber"), id_of(session, "Write report #work"))

    reopened = _reopen(conn, vault)
    write = next(n for n in reopened.get_tree().ungrouped if n.item.text == "Write report #work")
    assert [c.item.text for c in write.children] == ["Call plumber"]


def test_nest_rejects_cycle(session: FocusSession) -> None:
    a = id_of(session, "Draft outline")
    b = id_of(session, "Collect numbers")
    assert session.nest_under(b, a)
    assert not session.nest_under(a, b)
    assert session.store.parent_of == {b: a}


def test_unnest_places_item_right_after_parent(session: FocusSession) -> None:
    parent = id_of(session, FLAT[0])
    child = id_of(session, "Call plumber")
    session.nest_under(child, parent)

    assert session.unnest(child)

    assert _root_texts(session)[:2] == [FLAT[0], "Call plumber"]
    assert parent not in session.store.children_of
    assert _texts(session)[:2] == [FLAT[0], "Call plumber"]


def test_reorder_before(session: FocusSession) -> None:
    session.set_priority_order([id_of(session, t) for t in FLAT])
    assert session.reorder(id_of(session, "Call plumber"), id_of(session, FLAT[0]), DropPosition.BEFORE)
    assert _texts(session) == ["Call plumber", *FLAT[:4]]


def test_reorder_after_unranked_target_keeps_display_order(session: FocusSession) -> None:
    assert session.store.priority_order == []
    assert session.reorder(id_of(session, FLAT[0]), id_of(session, "Call plumber"), DropPosition.AFTER)
    assert _texts(session) == [*FLAT[1:], FLAT[0]]


def test_move_adjacent_completes_priority_order(session: FocusSession) -> None:
    assert session.move_adjacent(id_of(session, "Call plumber"), Direction.UP)
    assert _texts(session) == [*FLAT[:3], "Call plumber", "Collect numbers"]


def test_mutations_on_unknown_items_are_noops(session: FocusSession) -> None:
    known = id_of(session, "Call plumber")
    assert not session.nest_under("nope", known)
    assert not session.reorder(known, "nope", DropPosition.AFTER)
    assert not session.unnest("nope")
    assert not session.move_adjacent("nope", Direction.DOWN)
    assert session.store.parent_of == {}


def test_apply_drop_zones(session: FocusSession) -> None:
    a = id_of(session, "Draft outline")
    b = id_of(session, "Collect numbers")
    assert session.apply_drop(b, a, DropZone.NEST)
    assert session.store.parent(b) == a
    assert session.apply_drop(b, a, DropZone.AFTER)
    assert session.store.parent(b) is None
    assert not session.apply_drop(a, a, DropZone.BEFORE)


def test_sections_group_roots(session: FocusSession, conn: sqlite3.Connection) -> None:
    section = session.create_section("Work")
    assert session.assign_to_section(id_of(session, "Write report #work"), "work")
    assert not session.assign_to_section(id_of(session, "Call plumber"), "Garden")

    tree = session.get_tree()
    assert "Write report #work" not in [n.item.text for n in tree.ungrouped]
    assert [n.item.text for n in tree.sections[0].roots] == ["Write report #work"]
    assert load_ordering_store(conn).assignment_of == {id_of(session, "Write report #work"): section.id}

    assert session.rename_section(section.id, "Office")
    assert session.set_section_collapsed("Office", True)
    assert session.store.sections[0].collapsed
    assert session.delete_section("Office")
    assert len(session.get_tree().ungrouped) == len(FLAT)


def test_refresh_reconciles_removed_items(
    session: FocusSession, conn: sqlite3.Connection, vault: FakeVault
) -> None:
    call = id_of(session, "Call plumber")
    draft = id_of(session, "Draft outline")
    write = id_of(session, "Write report #work")
    session.set_priority_order([call, write])
    session.nest_under(draft, write)

    vault.set("TODO.md", vault.text("TODO.md").replace("- [ ] Call plumber\n", ""))
    session.handle_document_event(DocumentEvent(DocumentEventKind.MODIFIED, "TODO.md"))
    session.refresh()

    assert session.find_item(call) is None
    stored = load_ordering_store(conn)
    assert stored.priority_order == [write]
    assert stored.parent_of == {draft: write}


def test_handle_document_event_invalidates_cache(session: FocusSession, vault: FakeVault) -> None:
    doc = vault.get_document("TODO.md")
    assert doc is not None
    assert session.extractor.is_cached(doc)
    session.handle_document_event(DocumentEvent(DocumentEventKind.DELETED, "TODO.md"))
    assert not session.extractor.is_cached(doc)


def test_toggle_completes_item_and_drops_overlay(
    session: FocusSession, vault: FakeVault
) -> None:
    call = id_of(session, "Call plumber")
    session.set_priority_order([call])

    session.toggle_item(call)

    assert "- [x] Call plumber" in vault.text("TODO.md")
    assert "Call plumber" not in _texts(session)
    assert session.store.priority_order == []


def test_toggle_unknown_item_raises(session: FocusSession) -> None:
    with pytest.raises(UnknownItemError, match="Item not found: nope"):
        session.toggle_item("nope")


def test_toggle_after_edit_above_checks_the_right_item(
    session: FocusSession, vault: FakeVault
) -> None:
    call = id_of(session, "Call plumber")
    vault.set("TODO.md", "- [ ] Inserted later\n" + vault.text("TODO.md"))

    session.toggle_item(call)

    lines = vault.text("TODO.md").split("\n")
    assert "- [x] Call plumber" in lines
    assert "\t- [ ] Collect numbers" in lines
    assert "Collect numbers" in _texts(session)
    assert "Call plumber" not in _texts(session)


def test_add_item_and_subtasks(session: FocusSession, vault: FakeVault) -> None:
    session.add_item("TODO.md", "Book flights")
    assert "Book flights" in _texts(session)

    session.add_subtasks(id_of(session, "Book flights"), ["Compare prices"])
    assert vault.text("TODO.md").endswith("- [ ] Book flights\n\t- [ ] Compare prices\n")
    assert "Compare prices" in _texts(session)


def test_spawn_note_links_item(session: FocusSession, vault: FakeVault) -> None:
    doc = session.spawn_note(id_of(session, "Call plumber"), "Plumber", "Number: 555")
    assert doc.path == "Plumber.md"
    assert "Parent:: [[TODO]]" in vault.text("Plumber.md")
    assert "Call plumber [[Plumber]]" in _texts(session)


def test_update_settings_persists_and_refreshes(
    session: FocusSession, conn: sqlite3.Connection
) -> None:
    session.update_settings(backlog_files="")
    assert _texts(session) == [FLAT[0]]
    assert load_settings(conn).backlog_files == []


def test_open_session_on_disk(tmp_path: Path) -> None:
    vault_dir = tmp_path / "vault"
    vault_dir.mkdir()
    (vault_dir / "TODO.md").write_text("- [ ] On disk\n")

    session = open_session(vault_dir, tmp_path / "data")
    try:
        assert [i.text for i in session.get_items()] == ["On disk"]
        assert (tmp_path / "data" / "focus.db").exists()
    finally:
        session.conn.close()


def test_open_session_records_vault_root(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    first.mkdir()
    second.mkdir()

    session = open_session(first, tmp_path / "data")
    session.conn.close()
    session = open_session(second, tmp_path / "data")
    try:
        assert get_metadata(session.conn, VAULT_ROOT_KEY) == str(second.resolve())
    finally:
        session.conn.close()


def test_watch_session_refreshes_after_edit(session: FocusSession, vault: FakeVault) -> None:
    seen: list[list[str]] = []

    async def scenario() -> None:
        stop = asyncio.Event()
        task = asyncio.create_task(
            watch_session(
                session,
                stop=stop,
                on_refresh=lambda s: seen.append([i.text for i in s.get_items()]),
                interval=0.01,
                delay=0.02,
            )
        )
        await asyncio.sleep(0.03)
        vault.set("TODO.md", vault.text("TODO.md") + "- [ ] Water plants\n")
        await asyncio.sleep(0.15)
        stop.set()
        await task

    asyncio.run(scenario())
    assert len(seen) == 1
    assert "Water plants" in seen[0]
