"""Single prioritized list of the checkbox items in a markdown vault."""

from focus_todos.core.extract.extractor import ItemExtractor
from focus_todos.core.ordering.store import OrderingStore
from focus_todos.core.session import FocusSession, open_session
from focus_todos.core.vault.filesystem import FilesystemVault
from focus_todos.protocols import DocumentStoreProtocol

__all__ = [
    "DocumentStoreProtocol",
    "FilesystemVault",
    "FocusSession",
    "ItemExtractor",
    "OrderingStore",
    "open_session",
]
