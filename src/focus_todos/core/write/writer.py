"""Write item changes back to their source documents."""

import re

from loguru import logger

from focus_todos.config import FORBIDDEN_PATH_PREFIXES
from focus_todos.errors import SourceMissingError
from focus_todos.models.document import DocumentRef
from focus_todos.models.item import Item
from focus_todos.protocols import DocumentStoreProtocol


def sanitize_vault_path(file_path: str) -> str:
    """Validate a vault path coming from untrusted input.

    Rejects traversal, protected folders and empty paths. Returns the
    normalized path without a leading slash.
    """
    normalized = re.sub(r"/+", "/", file_path.replace("\\", "/"))
    normalized = normalized.removeprefix("/")

    if normalized == ".." or "/../" in f"/{normalized}/":
        msg = f"Invalid file path (path traversal): {file_path}"
        raise ValueError(msg)

    for prefix in FORBIDDEN_PATH_PREFIXES:
        if normalized.startswith(prefix) or normalized == prefix.rstrip("/"):
            msg = f"Cannot write to protected path: {file_path}"
            raise ValueError(msg)

    if not normalized.strip():
        msg = "File path cannot be empty"
        raise ValueError(msg)

    return normalized


def sanitize_note_title(title: str) -> str:
    """Strip path separators and collapse whitespace in a note title."""
    sanitized = re.sub(r"[/\\:\0]", "-", title)
    sanitized = re.sub(r"\s+", " ", sanitized).strip()
    if not sanitized:
        msg = "Note title cannot be empty"
        raise ValueError(msg)
    return sanitized


class ItemWriter:
    """Edits source documents line by line.

    Every method re-reads the document; a missing document or line raises
    SourceMissingError.
    """

    def __init__(self, vault: DocumentStoreProtocol) -> None:
        self.vault = vault

    def _read_lines(self, item: Item) -> tuple[list[str], int]:
        """Read the item's document and locate its current line.

        The recorded line number is trusted only while it still holds the
        original text. Otherwise the original text must occur exactly once.
        """
        path = item.source.path
        try:
            text = self.vault.read_text(path)
        except FileNotFoundError:
            raise SourceMissingError(path) from None
        lines = text.split("\n")
        original = item.source.original_line
        index = item.source.line - 1
        if 0 <= index < len(lines) and lines[index].rstrip("\r") == original:
            return lines, index

        matches = [i for i, line in enumerate(lines) if line.rstrip("\r") == original]
        if len(matches) != 1:
            raise SourceMissingError(path, item.source.line)
        logger.debug("{}:{} moved to line {}", path, item.source.line, matches[0] + 1)
        return lines, matches[0]

    def _write_lines(self, path: str, lines: list[str]) -> None:
        try:
            self.vault.write_text(path, "\n".join(lines))
        except FileNotFoundError:
            raise SourceMissingError(path) from None

    def toggle_item(self, item: Item) -> None:
        """Flip the item's checkbox in its source line."""
        lines, index = self._read_lines(item)
        line = lines[index]
        if item.completed:
            lines[index] = line.replace("- [x]", "- [ ]", 1)
        else:
            lines[index] = line.replace("- [ ]", "- [x]", 1)
        self._write_lines(item.source.path, lines)
        logger.info("Toggled {}:{}", item.source.path, index + 1)

    def add_subtasks(self, item: Item, subtasks: list[str]) -> None:
        """Insert unchecked sub-items one tab deeper, directly below the item."""
        cleaned = [s.strip() for s in subtasks if s.strip()]
        if not cleaned:
            return
        lines, index = self._read_lines(item)
        current = lines[index]
        indent = current[: len(current) - len(current.lstrip())] + "\t"
        lines[index + 1 : index + 1] = [f"{indent}- [ ] {task}" for task in cleaned]
        self._write_lines(item.source.path, lines)
        logger.info("Added {} subtasks under {}:{}", len(cleaned), item.source.path, index + 1)

    def add_note_link(self, item: Item, note_title: str) -> None:
        """Append a ``[[note]]`` link to the item's line."""
        lines, index = self._read_lines(item)
        lines[index] = lines[index].rstrip() + f" [[{note_title}]]"
        self._write_lines(item.source.path, lines)

    def create_spawned_note(
        self,
        item: Item,
        title: str,
        content: str,
        folder: str | None = None,
    ) -> DocumentRef:
        """Create a note for the item with a backlink, then link it from the item."""
        safe_title = sanitize_note_title(title)
        target_folder = sanitize_vault_path(folder) if folder else ""
        file_path = sanitize_vault_path(
            f"{target_folder}/{safe_title}.md" if target_folder else f"{safe_title}.md"
        )

        source_name = item.source.path.removesuffix(".md")
        note_text = f"# {title}\n\nParent:: [[{source_name}]]\n\n---\n\n{content}\n"

        # Check the item still exists before creating anything.
        self._read_lines(item)
        doc = self.vault.create_document(file_path, note_text)
        self.add_note_link(item, safe_title)
        logger.info("Created note {} for {}:{}", file_path, item.source.path, item.source.line)
        return doc

    def add_item(self, file_path: str, text: str) -> None:
        """Append a new unchecked item, creating the document if needed."""
        file_path = sanitize_vault_path(file_path)
        text = text.strip()
        if not text:
            msg = "Item text cannot be empty"
            raise ValueError(msg)

        if self.vault.get_document(file_path) is None:
            self.vault.create_document(file_path, "")
        content = self.vault.read_text(file_path).rstrip()
        prefix = f"{content}\n" if content else ""
        self.vault.write_text(file_path, f"{prefix}- [ ] {text}\n")
        logger.info("Added item to {}", file_path)
