"""Long-lived session owning the item list and the ordering overlay."""

import asyncio
import sqlite3
from collections.abc import Callable, Iterable
from pathlib import Path

from loguru import logger

from focus_todos.config import DEBOUNCE_SECONDS, DEFAULT_DB_NAME, POLL_INTERVAL_SECONDS, Settings
from focus_todos.core.database.schema import get_metadata, open_database, set_metadata
from focus_todos.core.extract.extractor import ItemExtractor
from focus_todos.core.extract.parser import flatten_items
from focus_todos.core.ordering.persistence import (
    load_ordering_store,
    load_settings,
    save_settings,
    save_slices,
)
from focus_todos.core.ordering.store import OrderingStore
from focus_todos.core.ordering.tree import build_display_tree
from focus_todos.core.vault.filesystem import FilesystemVault
from focus_todos.core.vault.sources import get_source_documents
from focus_todos.core.vault.watcher import watch_vault
from focus_todos.core.write.writer import ItemWriter
from focus_todos.errors import UnknownItemError
from focus_todos.models.document import DocumentEvent, DocumentEventKind, DocumentRef
from focus_todos.models.item import Item
from focus_todos.models.ordering import (
    Direction,
    DisplayTree,
    DropPosition,
    DropZone,
    Section,
    Slice,
)
from focus_todos.protocols import DocumentStoreProtocol

VAULT_ROOT_KEY = "vault_root"


class FocusSession:
    """Owns the ordering overlay with an explicit load, mutate, persist lifecycle.

    load() reads the three overlay records once. Each mutation persists the
    records it touched and re-sorts the current items. refresh() re-parses
    the source documents, prunes stale overlay references and re-sorts.

    Mutations naming an item that is not in the current item set are no-ops
    and return False.
    """

    def __init__(
        self,
        conn: sqlite3.Connection,
        vault: DocumentStoreProtocol,
        *,
        settings: Settings | None = None,
    ) -> None:
        self.conn = conn
        self.vault = vault
        self.settings = settings if settings is not None else load_settings(conn)
        self.extractor = ItemExtractor(vault)
        self.writer = ItemWriter(vault)
        self.store = OrderingStore()
        self._items: list[Item] = []
        self._by_id: dict[str, Item] = {}

    def load(self) -> None:
        self.store = load_ordering_store(self.conn)
        logger.debug(
            "Loaded overlay: {} ranked, {} nested, {} sections",
            len(self.store.priority_order),
            len(self.store.parent_of),
            len(self.store.sections),
        )

    # --- Items ---

    def refresh(self) -> list[Item]:
        """Re-derive the flat item list, reconcile the overlay and sort."""
        docs = get_source_documents(self.vault, self.settings)
        flat = flatten_items(self.extractor.parse_documents(docs), include_completed=False)
        self._by_id = {item.id: item for item in flat}

        changed = self.store.gc(self._by_id)
        if changed:
            try:
                save_slices(self.conn, self.store, changed)
            except sqlite3.Error:
                logger.exception("Failed to persist reconciled overlay")

        self._items = self.store.sort(flat, self.settings.default_sort)
        logger.debug("Refreshed: {} documents, {} open items", len(docs), len(self._items))
        return list(self._items)

    def get_items(self) -> tuple[Item, ...]:
        """Current flat, sorted item list."""
        return tuple(self._items)

    def get_tree(self) -> DisplayTree:
        return build_display_tree(self._items, self.store)

    def find_item(self, item_id: str) -> Item | None:
        return self._by_id.get(item_id)

    def root_ids(self) -> list[str]:
        """Root item ids in display order (ungrouped first, then by section)."""
        tree = self.get_tree()
        ids = [node.item.id for node in tree.ungrouped]
        for bucket in tree.sections:
            ids.extend(node.item.id for node in bucket.roots)
        return ids

    def handle_document_event(self, event: DocumentEvent) -> None:
        """Drop cached parses for documents that changed or disappeared."""
        if event.kind in (DocumentEventKind.MODIFIED, DocumentEventKind.DELETED):
            self.extractor.invalidate(event.path)

    # --- Overlay mutations ---

    def _is_live(self, *item_ids: str) -> bool:
        missing = [i for i in item_ids if i not in self._by_id]
        if missing:
            logger.debug("Ignoring mutation on unknown items: {}", ", ".join(missing))
            return False
        return True

    def _apply(self, changed: set[Slice]) -> bool:
        if not changed:
            return False
        save_slices(self.conn, self.store, changed)
        self._items = self.store.sort(self._items, self.settings.default_sort)
        return True

    def set_priority_order(self, item_ids: Iterable[str]) -> bool:
        return self._apply(self.store.set_priority_order(item_ids))

    def reorder(self, dragged_id: str, target_id: str, position: DropPosition) -> bool:
        if not self._is_live(dragged_id, target_id):
            return False
        return self._apply(
            self.store.reorder(dragged_id, target_id, position, root_ids=self.root_ids())
        )

    def nest_under(self, dragged_id: str, new_parent_id: str) -> bool:
        if not self._is_live(dragged_id, new_parent_id):
            return False
        return self._apply(self.store.nest_under(dragged_id, new_parent_id))

    def unnest(self, item_id: str) -> bool:
        if not self._is_live(item_id):
            return False
        return self._apply(self.store.unnest(item_id, root_ids=self.root_ids()))

    def move_adjacent(self, item_id: str, direction: Direction) -> bool:
        if not self._is_live(item_id):
            return False
        return self._apply(self.store.move_adjacent(item_id, direction, root_ids=self.root_ids()))

    def assign_to_section(self, item_id: str, section: str) -> bool:
        """Assign an item to a section given by id or name."""
        found = self.store.find_section(section)
        if found is None or not self._is_live(item_id):
            return False
        return self._apply(self.store.assign_to_section(item_id, found.id))

    def unassign(self, item_id: str) -> bool:
        if not self._is_live(item_id):
            return False
        return self._apply(self.store.unassign(item_id))

    def apply_drop(self, dragged_id: str, target_id: str, zone: DropZone) -> bool:
        """Apply an already classified drop of one item onto another."""
        if dragged_id == target_id:
            return False
        if zone == DropZone.NEST:
            return self.nest_under(dragged_id, target_id)
        position = DropPosition.BEFORE if zone == DropZone.BEFORE else DropPosition.AFTER
        return self.reorder(dragged_id, target_id, position)

    # --- Sections ---

    def create_section(self, name: str) -> Section:
        section = self.store.create_section(name)
        self._apply({Slice.SECTIONS})
        logger.info("Created section {!r} ({})", section.name, section.id)
        return section

    def _section_id(self, section: str) -> str | None:
        found = self.store.find_section(section)
        return found.id if found else None

    def rename_section(self, section: str, name: str) -> bool:
        section_id = self._section_id(section)
        return section_id is not None and self._apply(self.store.rename_section(section_id, name))

    def delete_section(self, section: str) -> bool:
        section_id = self._section_id(section)
        return section_id is not None and self._apply(self.store.delete_section(section_id))

    def set_section_collapsed(self, section: str, collapsed: bool) -> bool:
        section_id = self._section_id(section)
        return section_id is not None and self._apply(
            self.store.set_section_collapsed(section_id, collapsed)
        )

    def move_section(self, section: str, direction: Direction) -> bool:
        section_id = self._section_id(section)
        return section_id is not None and self._apply(self.store.move_section(section_id, direction))

    # --- Settings ---

    def update_settings(self, **values: object) -> Settings:
        """Change settings, persist them and refresh."""
        for key, value in values.items():
            self.settings.set_value(key, value)
        save_settings(self.conn, self.settings)
        self.refresh()
        return self.settings

    # --- Write-back ---

    def _require(self, item_id: str) -> Item:
        item = self._by_id.get(item_id)
        if item is None:
            raise UnknownItemError(item_id)
        return item

    def _after_write(self, path: str) -> None:
        self.extractor.invalidate(path)
        self.refresh()

    def toggle_item(self, item_id: str) -> None:
        item = self._require(item_id)
        self.writer.toggle_item(item)
        self._after_write(item.source.path)

    def add_subtasks(self, item_id: str, subtasks: list[str]) -> None:
        item = self._require(item_id)
        self.writer.add_subtasks(item, subtasks)
        self._after_write(item.source.path)

    def spawn_note(
        self,
        item_id: str,
        title: str,
        content: str,
        folder: str | None = None,
    ) -> DocumentRef:
        item = self._require(item_id)
        doc = self.writer.create_spawned_note(item, title, content, folder)
        self._after_write(item.source.path)
        return doc

    def add_item(self, file_path: str, text: str) -> None:
        self.writer.add_item(file_path, text)
        self._after_write(file_path.lstrip("/"))


def open_session(vault_dir: Path, data_dir: Path, *, db_name: str = DEFAULT_DB_NAME) -> FocusSession:
    """Open the database and vault, load the overlay and run a first refresh.

    The vault root is recorded in the database metadata; opening a database
    last used with another vault logs a warning.
    """
    conn = open_database(data_dir, db_name)
    vault_root = str(vault_dir.resolve())
    previous = get_metadata(conn, VAULT_ROOT_KEY)
    if previous is not None and previous != vault_root:
        logger.warning("Database was last used with vault {}, now opening {}", previous, vault_root)
    set_metadata(conn, VAULT_ROOT_KEY, vault_root)
    session = FocusSession(conn, FilesystemVault(vault_dir))
    session.load()
    session.refresh()
    return session


async def watch_session(
    session: FocusSession,
    *,
    stop: asyncio.Event,
    on_refresh: Callable[[FocusSession], object] | None = None,
    interval: float = POLL_INTERVAL_SECONDS,
    delay: float = DEBOUNCE_SECONDS,
) -> None:
    """Keep a session current while ``stop`` is unset.

    Changed documents are invalidated as soon as they are seen; one refresh
    runs per burst of changes, followed by ``on_refresh(session)``.
    """

    def _refresh() -> None:
        session.refresh()
        if on_refresh is not None:
            on_refresh(session)

    await watch_vault(
        session.vault,
        on_event=session.handle_document_event,
        on_refresh=_refresh,
        stop=stop,
        interval=interval,
        delay=delay,
    )
