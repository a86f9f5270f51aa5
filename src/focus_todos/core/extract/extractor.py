"""Per-document item extraction with modification-time caching."""

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from focus_todos.core.extract.parser import parse_text
from focus_todos.models.document import DocumentRef
from focus_todos.models.item import Item
from focus_todos.protocols import DocumentStoreProtocol


@dataclass(frozen=True)
class _CacheEntry:
    mtime: float
    items: list[Item]


class ItemExtractor:
    """Parse vault documents into items, memoized per path by mtime.

    A cache hit skips reading the document entirely. Entries are dropped
    explicitly via invalidate() when the vault reports a change, and
    implicitly whenever the document's mtime differs from the cached one.
    """

    def __init__(self, vault: DocumentStoreProtocol) -> None:
        self.vault = vault
        self._cache: dict[str, _CacheEntry] = {}

    def invalidate(self, path: str) -> None:
        self._cache.pop(path, None)

    def clear(self) -> None:
        self._cache.clear()

    def is_cached(self, doc: DocumentRef) -> bool:
        entry = self._cache.get(doc.path)
        return entry is not None and entry.mtime == doc.mtime

    def parse_document(self, doc: DocumentRef) -> list[Item]:
        """Return the top-level items of a document, re-scanning only when stale."""
        entry = self._cache.get(doc.path)
        if entry is not None and entry.mtime == doc.mtime:
            return entry.items

        try:
            text = self.vault.read_text(doc.path)
        except (FileNotFoundError, UnicodeDecodeError):
            logger.debug("Cannot read {}, treating as empty", doc.path)
            self._cache.pop(doc.path, None)
            return []

        items = parse_text(text, path=doc.path, mtime=doc.mtime)
        self._cache[doc.path] = _CacheEntry(mtime=doc.mtime, items=items)
        logger.debug("Parsed {} ({} top-level items)", doc.path, len(items))
        return items

    def parse_documents(self, docs: Iterable[DocumentRef]) -> list[Item]:
        """Parse several documents, concatenating their items in order.

        The given documents are the full scanned set: cache entries for any
        other path are evicted.
        """
        refs = list(docs)
        scanned = {doc.path for doc in refs}
        stale = [p for p in self._cache if p not in scanned]
        for path in stale:
            del self._cache[path]
        if stale:
            logger.debug("Evicted {} cached documents no longer scanned", len(stale))
        result: list[Item] = []
        for doc in refs:
            result.extend(self.parse_document(doc))
        return result
