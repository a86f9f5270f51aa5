"""Parse markdown text into checkbox items."""

import hashlib
import re
from collections.abc import Iterable
from datetime import UTC, datetime

from focus_todos.models.item import Item, SourceLocation

_ITEM_RE = re.compile(r"^(\s*)- \[([ x])\] (.+)$")
_TAG_RE = re.compile(r"#[\w-]+")
_LINK_RE = re.compile(r"\[\[([^\]]+)\]\]")
_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def compute_item_id(path: str, line: str) -> str:
    """Derive a stable id from the document path and the trimmed line.

    Two identical lines in the same document share an id.
    """
    key = f"{path}::{line.strip()}"
    return hashlib.sha1(key.encode("utf-8")).hexdigest()[:12]


def compute_indent_level(line: str) -> int:
    """Tabs count one level each; remaining spaces count one level per two."""
    whitespace = line[: len(line) - len(line.lstrip())]
    tabs = whitespace.count("\t")
    spaces = len(whitespace) - tabs
    return tabs + spaces // 2


def extract_tags(text: str) -> tuple[str, ...]:
    """Return ``#tag`` tokens in first-seen order without duplicates."""
    return tuple(dict.fromkeys(_TAG_RE.findall(text)))


def extract_linked_document(text: str) -> str | None:
    """Return the target of the first ``[[...]]`` link, if any."""
    match = _LINK_RE.search(text)
    return match.group(1) if match else None


def captured_at_for(basename: str, mtime: float) -> datetime:
    """Date from a ``YYYY-MM-DD`` filename prefix, else the modification time."""
    match = _DATE_PREFIX_RE.match(basename)
    if match:
        try:
            return datetime.strptime(match.group(1), "%Y-%m-%d").replace(tzinfo=UTC)
        except ValueError:
            pass
    return datetime.fromtimestamp(mtime, tz=UTC)


def parse_line(line: str, *, line_number: int, path: str, captured_at: datetime) -> Item | None:
    """Parse one line, returning None unless it is a checkbox item."""
    match = _ITEM_RE.match(line)
    if match is None:
        return None

    _indent, checkbox, text = match.groups()
    return Item(
        id=compute_item_id(path, line),
        text=text.strip(),
        completed=checkbox == "x",
        source=SourceLocation(path=path, line=line_number, original_line=line),
        indent=compute_indent_level(line),
        captured_at=captured_at,
        tags=extract_tags(text),
        linked_document=extract_linked_document(text),
    )


def parse_text(text: str, *, path: str, mtime: float) -> list[Item]:
    """Parse a document into top-level items with structural children attached.

    Args:
        text: Full document text.
        path: Vault-relative document path.
        mtime: Document modification time (seconds since epoch).

    Returns:
        Top-level items in document order.
    """
    basename = path.rsplit("/", 1)[-1].rsplit(".", 1)[0]
    captured_at = captured_at_for(basename, mtime)

    items: list[Item] = []
    stack: list[Item] = []

    for i, line in enumerate(text.split("\n")):
        item = parse_line(line.rstrip("\r"), line_number=i + 1, path=path, captured_at=captured_at)
        if item is None:
            continue

        if item.indent == 0:
            items.append(item)
            stack = [item]
            continue

        while stack and stack[-1].indent >= item.indent:
            stack.pop()
        if stack:
            stack[-1].children.append(item)
        else:
            items.append(item)
        stack.append(item)

    return items


def flatten_items(items: Iterable[Item], *, include_completed: bool = False) -> list[Item]:
    """Walk item trees depth-first and return every item as a flat list.

    Children of a completed item are still visited.
    """
    result: list[Item] = []

    def _traverse(nodes: Iterable[Item]) -> None:
        for item in nodes:
            if include_completed or not item.completed:
                result.append(item)
            if item.children:
                _traverse(item.children)

    _traverse(items)
    return result
