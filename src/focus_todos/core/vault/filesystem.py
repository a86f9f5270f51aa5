"""Document store backed by a directory of markdown files."""

import os
from pathlib import Path

from loguru import logger

from focus_todos.models.document import DocumentRef

MARKDOWN_SUFFIX = ".md"


class FilesystemVault:
    """A vault rooted at a directory.

    Paths handed in and out are relative to the root with forward slashes.
    Dot-directories (``.git``, ``.obsidian``, ``.trash``) are never listed.
    """

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).expanduser().resolve()
        if not self.root.is_dir():
            msg = f"Vault directory {str(self.root)!r} not found"
            raise ValueError(msg)
        logger.debug("Vault ready at {}", self.root)

    def _abs(self, path: str) -> Path:
        full = (self.root / path.lstrip("/")).resolve()
        if full != self.root and self.root not in full.parents:
            msg = f"Path escapes vault: {path!r}"
            raise ValueError(msg)
        return full

    def _rel(self, full: Path) -> str:
        return full.relative_to(self.root).as_posix()

    def _ref(self, full: Path) -> DocumentRef:
        return DocumentRef(path=self._rel(full), mtime=full.stat().st_mtime)

    def list_documents(self, folder: str = "") -> list[DocumentRef]:
        """Return every markdown document below ``folder``, sorted by path."""
        base = self._abs(folder)
        if not base.is_dir():
            return []

        docs: list[DocumentRef] = []
        for dirpath, dirnames, filenames in os.walk(base):
            dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
            for fname in sorted(filenames):
                if not fname.lower().endswith(MARKDOWN_SUFFIX):
                    continue
                full = Path(dirpath) / fname
                try:
                    docs.append(self._ref(full))
                except FileNotFoundError:
                    # Removed between listing and stat.
                    continue
        return docs

    def list_folders(self, folder: str = "") -> list[str]:
        base = self._abs(folder)
        if not base.is_dir():
            return []
        return sorted(
            self._rel(child)
            for child in base.iterdir()
            if child.is_dir() and not child.name.startswith(".")
        )

    def get_document(self, path: str) -> DocumentRef | None:
        full = self._abs(path)
        if not full.is_file():
            return None
        return self._ref(full)

    def read_text(self, path: str) -> str:
        return self._abs(path).read_text(encoding="utf-8")

    def write_text(self, path: str, text: str) -> None:
        full = self._abs(path)
        if not full.is_file():
            raise FileNotFoundError(path)
        logger.debug("Writing {}", path)
        full.write_text(text, encoding="utf-8")

    def create_document(self, path: str, text: str) -> DocumentRef:
        full = self._abs(path)
        if full.exists():
            msg = f"Document already exists: {path!r}"
            raise FileExistsError(msg)
        full.parent.mkdir(parents=True, exist_ok=True)
        logger.debug("Creating {}", path)
        full.write_text(text, encoding="utf-8")
        return self._ref(full)
