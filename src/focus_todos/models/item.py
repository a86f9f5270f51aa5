"""Domain models for extracted task items."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class SourceLocation:
    """Where an item lives in the vault."""

    path: str
    line: int
    original_line: str


@dataclass(frozen=True)
class Item:
    """A single checkbox item parsed from a document.

    ``children`` holds structural sub-items from the same document (indented
    checkboxes directly beneath this one). Cross-document nesting lives in the
    ordering overlay, not here.
    """

    id: str
    text: str
    completed: bool
    source: SourceLocation
    indent: int
    captured_at: datetime
    tags: tuple[str, ...] = ()
    linked_document: str | None = None
    children: list["Item"] = field(default_factory=list, compare=False, repr=False)

    @property
    def source_name(self) -> str:
        """Filename without the markdown extension."""
        name = self.source.path.rsplit("/", 1)[-1]
        return name[:-3] if name.lower().endswith(".md") else name
