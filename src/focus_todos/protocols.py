"""Protocols for dependency injection."""

from typing import Protocol, runtime_checkable

from focus_todos.models.document import DocumentRef


@runtime_checkable
class DocumentStoreProtocol(Protocol):
    """Protocol for the vault holding the source documents.

    All paths are vault-relative with forward slashes.
    """

    def list_documents(self, folder: str = "") -> list[DocumentRef]:
        """Return every markdown document below ``folder``, recursively."""
        ...

    def list_folders(self, folder: str = "") -> list[str]:
        """Return the paths of the immediate subfolders of ``folder``."""
        ...

    def get_document(self, path: str) -> DocumentRef | None:
        """Return the document at ``path``, or None if it does not exist."""
        ...

    def read_text(self, path: str) -> str:
        """Return the full text of a document. Raises FileNotFoundError."""
        ...

    def write_text(self, path: str, text: str) -> None:
        """Replace the full text of an existing document."""
        ...

    def create_document(self, path: str, text: str) -> DocumentRef:
        """Create a new document, including missing parent folders."""
        ...
