"""Domain models for vault documents."""

from dataclasses import dataclass
from enum import StrEnum


@dataclass(frozen=True)
class DocumentRef:
    """A markdown document in the vault."""

    path: str
    mtime: float

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def basename(self) -> str:
        """File name without extension."""
        stem, dot, _ext = self.name.rpartition(".")
        return stem if dot else self.name

    @property
    def extension(self) -> str:
        _stem, dot, ext = self.name.rpartition(".")
        return ext if dot else ""


class DocumentEventKind(StrEnum):
    CREATED = "created"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class DocumentEvent:
    """A change notification for a single document."""

    kind: DocumentEventKind
    path: str
