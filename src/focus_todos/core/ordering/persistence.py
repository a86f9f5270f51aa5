"""Load and save the ordering overlay and settings as named records."""

import json
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from focus_todos.config import Settings
from focus_todos.core.ordering.store import OrderingStore
from focus_todos.models.ordering import Section, Slice

SETTINGS_RECORD = "settings"


def load_record(conn: sqlite3.Connection, name: str) -> dict[str, Any] | None:
    """Return a record's value, or None if it is missing or unreadable."""
    row = conn.execute("SELECT value FROM records WHERE name = ?", (name,)).fetchone()
    if row is None:
        return None
    try:
        value = json.loads(row[0])
    except json.JSONDecodeError:
        logger.warning("Record {!r} is not valid JSON, ignoring it", name)
        return None
    if not isinstance(value, dict):
        logger.warning("Record {!r} is not an object, ignoring it", name)
        return None
    return value


def get_record_version(conn: sqlite3.Connection, name: str) -> int:
    row = conn.execute("SELECT version FROM records WHERE name = ?", (name,)).fetchone()
    return int(row[0]) if row else 0


def save_record(conn: sqlite3.Connection, name: str, value: dict[str, Any]) -> int:
    """Upsert a record, bumping its version. Returns the new version."""
    updated = datetime.now(tz=UTC).isoformat()
    payload = {**value, "updated": updated}
    version = get_record_version(conn, name) + 1
    conn.execute(
        """INSERT OR REPLACE INTO records (name, value, version, updated)
           VALUES (?, ?, ?, ?)""",
        (name, json.dumps(payload, sort_keys=True), version, updated),
    )
    conn.commit()
    return version


def _str_list(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


def _str_map(value: Any) -> dict[str, str]:
    if not isinstance(value, dict):
        return {}
    return {str(k): str(v) for k, v in value.items()}


def _list_map(value: Any) -> dict[str, list[str]]:
    if not isinstance(value, dict):
        return {}
    return {str(k): _str_list(v) for k, v in value.items()}


def _parse_sections(value: Any) -> list[Section]:
    sections: list[Section] = []
    if not isinstance(value, list):
        return sections
    for raw in value:
        if not isinstance(raw, dict) or "id" not in raw:
            continue
        sections.append(
            Section(
                id=str(raw["id"]),
                name=str(raw.get("name", "")),
                collapsed=bool(raw.get("collapsed", False)),
            )
        )
    return sections


def load_ordering_store(conn: sqlite3.Connection) -> OrderingStore:
    """Build an OrderingStore from the three persisted records."""
    priorities = load_record(conn, Slice.PRIORITIES) or {}
    nesting = load_record(conn, Slice.NESTING) or {}
    sections = load_record(conn, Slice.SECTIONS) or {}

    return OrderingStore(
        priority_order=_str_list(priorities.get("order")),
        parent_of=_str_map(nesting.get("parent_map")),
        children_of=_list_map(nesting.get("child_order")),
        sections=_parse_sections(sections.get("sections")),
        assignment_of=_str_map(sections.get("assignments")),
        order_within_section=_list_map(sections.get("section_order")),
    )


def slice_to_record(store: OrderingStore, slice_: Slice) -> dict[str, Any]:
    if slice_ == Slice.PRIORITIES:
        return {"order": store.priority_order}
    if slice_ == Slice.NESTING:
        return {"parent_map": store.parent_of, "child_order": store.children_of}
    return {
        "sections": [
            {"id": s.id, "name": s.name, "collapsed": s.collapsed} for s in store.sections
        ],
        "assignments": store.assignment_of,
        "section_order": store.order_within_section,
    }


def save_slices(conn: sqlite3.Connection, store: OrderingStore, slices: Iterable[Slice]) -> None:
    """Persist only the given slices; other records are left untouched."""
    for slice_ in sorted(set(slices)):
        version = save_record(conn, slice_, slice_to_record(store, slice_))
        logger.debug("Saved {} (version {})", slice_, version)


def load_settings(conn: sqlite3.Connection) -> Settings:
    return Settings.from_dict(load_record(conn, SETTINGS_RECORD))


def save_settings(conn: sqlite3.Connection, settings: Settings) -> None:
    save_record(conn, SETTINGS_RECORD, settings.to_dict())
