"""Tests for overlay and settings persistence."""

import json
import sqlite3

from focus_todos.config import Settings
from focus_todos.core.ordering.persistence import (
    get_record_version,
    load_ordering_store,
    load_record,
    load_settings,
    save_record,
    save_settings,
    save_slices,
)
from focus_todos.core.ordering.store import OrderingStore
from focus_todos.models.ordering import DefaultSort, Section, Slice


def _raw(conn: sqlite3.Connection, name: str) -> dict:
    row = conn.execute("SELECT value FROM records WHERE name = ?", (name,)).fetchone()
    return json.loads(row[0])


def test_empty_database_loads_empty_store(conn: sqlite3.Connection) -> None:
    store = load_ordering_store(conn)
    assert store.priority_order == []
    assert store.parent_of == {}
    assert store.sections == []


def test_save_record_bumps_version_and_stamps_updated(conn: sqlite3.Connection) -> None:
    assert get_record_version(conn, "x") == 0
    assert save_record(conn, "x", {"a": 1}) == 1
    assert save_record(conn, "x", {"a": 2}) == 2
    value = load_record(conn, "x")
    assert value is not None
    assert value["a"] == 2
    assert "updated" in value


def test_store_survives_roundtrip(conn: sqlite3.Connection) -> None:
    work = Section(id="s1", name="Work", collapsed=True)
    store = OrderingStore(
        priority_order=["a", "b"],
        parent_of={"c": "a"},
        children_of={"a": ["c"]},
        sections=[work],
        assignment_of={"b": "s1"},
        order_within_section={"s1": ["b"]},
    )
    save_slices(conn, store, {Slice.PRIORITIES, Slice.NESTING, Slice.SECTIONS})

    loaded = load_ordering_store(conn)
    assert loaded.priority_order == ["a", "b"]
    assert loaded.parent_of == {"c": "a"}
    assert loaded.children_of == {"a": ["c"]}
    assert loaded.sections == [work]
    assert loaded.assignment_of == {"b": "s1"}
    assert loaded.order_within_section == {"s1": ["b"]}


def test_record_layout(conn: sqlite3.Connection) -> None:
    store = OrderingStore(priority_order=["a"], parent_of={"c": "a"}, children_of={"a": ["c"]})
    save_slices(conn, store, {Slice.PRIORITIES, Slice.NESTING})
    assert _raw(conn, "priorities")["order"] == ["a"]
    nesting = _raw(conn, "nesting")
    assert nesting["parent_map"] == {"c": "a"}
    assert nesting["child_order"] == {"a": ["c"]}


def test_save_slices_touches_only_given_records(conn: sqlite3.Connection) -> None:
    store = OrderingStore(priority_order=["a"])
    save_slices(conn, store, {Slice.PRIORITIES, Slice.NESTING})
    save_slices(conn, store, {Slice.PRIORITIES})

    assert get_record_version(conn, "priorities") == 2
    assert get_record_version(conn, "nesting") == 1
    assert get_record_version(conn, "sections") == 0


def test_corrupt_record_is_treated_as_empty(conn: sqlite3.Connection) -> None:
    conn.execute(
        "INSERT INTO records (name, value, version, updated) VALUES (?, ?, ?, ?)",
        ("priorities", "{not json", 1, "2026-01-01"),
    )
    conn.execute(
        "INSERT INTO records (name, value, version, updated) VALUES (?, ?, ?, ?)",
        ("nesting", "[1, 2]", 1, "2026-01-01"),
    )
    store = load_ordering_store(conn)
    assert store.priority_order == []
    assert store.parent_of == {}


def test_malformed_fields_are_ignored(conn: sqlite3.Connection) -> None:
    save_record(
        conn,
        "sections",
        {"sections": [{"name": "no id"}, "junk", {"id": "s1", "name": "Ok"}], "assignments": []},
    )
    store = load_ordering_store(conn)
    assert store.sections == [Section(id="s1", name="Ok")]
    assert store.assignment_of == {}


def test_settings_roundtrip(conn: sqlite3.Connection) -> None:
    settings = Settings(
        daily_notes_parent="Daily",
        backlog_files=["Inbox.md"],
        include_folders=["Projects"],
        default_sort=DefaultSort.SOURCE,
        daily_notes_days=7,
    )
    save_settings(conn, settings)
    assert load_settings(conn) == settings


def test_missing_settings_load_defaults(conn: sqlite3.Connection) -> None:
    assert load_settings(conn) == Settings()
