"""Shared test fixtures."""

import sqlite3
from collections.abc import Iterator

import pytest

from focus_todos.config import Settings
from focus_todos.core.database.schema import create_schema
from focus_todos.core.session import FocusSession
from tests.unit.fakes import FakeVault

SAMPLE_VAULT = {
    "TODO.md": (
        "# Backlog\n"
        "- [ ] Write report #work\n"
        "\t- [ ] Draft outline\n"
        "\t- [ ] Collect numbers\n"
        "- [ ] Call plumber\n"
        "- [x] Done thing\n"
    ),
    "2026/2026-10-18.md": "# Sunday\n\n- [ ] Review PR [[Project X]] #work\n",
    "Projects/Project X.md": "Notes only, no items.\n",
}


@pytest.fixture
def vault() -> FakeVault:
    return FakeVault(dict(SAMPLE_VAULT))


@pytest.fixture
def conn() -> Iterator[sqlite3.Connection]:
    """In-memory database with the overlay schema."""
    connection = sqlite3.connect(":memory:")
    create_schema(connection)
    yield connection
    connection.close()


@pytest.fixture
def session(conn: sqlite3.Connection, vault: FakeVault) -> FocusSession:
    """Loaded and refreshed session over the sample vault.

    The daily-note window is disabled so the dated sample note is always included.
    """
    s = FocusSession(conn, vault, settings=Settings(daily_notes_days=0))
    s.load()
    s.refresh()
    return s
