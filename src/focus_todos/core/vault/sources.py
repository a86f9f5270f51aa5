"""Select the vault documents that are scanned for items."""

import re
from datetime import date, timedelta

from loguru import logger

from focus_todos.config import Settings
from focus_todos.models.document import DocumentRef
from focus_todos.protocols import DocumentStoreProtocol

_YEAR_FOLDER_RE = re.compile(r"^\d{4}$")
_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def get_daily_notes(
    vault: DocumentStoreProtocol,
    settings: Settings,
    *,
    today: date | None = None,
) -> list[DocumentRef]:
    """Return daily notes from year folders, newest first.

    Year folders (``2024``, ``2025``, ...) are looked up directly under
    ``settings.daily_notes_parent``. With ``daily_notes_days > 0``, notes whose
    name starts with an older date are dropped; undated notes are kept.
    """
    notes: list[DocumentRef] = []
    for folder in vault.list_folders(settings.daily_notes_parent):
        if _YEAR_FOLDER_RE.match(folder.rsplit("/", 1)[-1]):
            notes.extend(vault.list_documents(folder))

    notes.sort(key=lambda d: d.basename, reverse=True)

    if settings.daily_notes_days <= 0:
        return notes

    cutoff = ((today or date.today()) - timedelta(days=settings.daily_notes_days)).isoformat()
    kept = []
    for doc in notes:
        match = _DATE_PREFIX_RE.match(doc.basename)
        if match is None or match.group(1) >= cutoff:
            kept.append(doc)
    return kept


def get_backlog_files(vault: DocumentStoreProtocol, settings: Settings) -> list[DocumentRef]:
    docs = []
    for path in settings.backlog_files:
        doc = vault.get_document(path)
        if doc is None:
            logger.debug("Backlog file {} not found, skipping", path)
            continue
        docs.append(doc)
    return docs


def get_source_documents(
    vault: DocumentStoreProtocol,
    settings: Settings,
    *,
    today: date | None = None,
) -> list[DocumentRef]:
    """Return every document to scan: daily notes, backlog files, include folders.

    Duplicates are dropped, keeping the first occurrence.
    """
    candidates = [
        *get_daily_notes(vault, settings, today=today),
        *get_backlog_files(vault, settings),
    ]
    for folder in settings.include_folders:
        candidates.extend(vault.list_documents(folder))

    seen: set[str] = set()
    result: list[DocumentRef] = []
    for doc in candidates:
        if doc.path not in seen:
            seen.add(doc.path)
            result.append(doc)
    return result
