"""Exceptions raised by focus-todos."""


class FocusError(Exception):
    """Base class for errors surfaced to the user."""


class SourceMissingError(FocusError):
    """A document or line referenced by an item no longer exists."""

    def __init__(self, path: str, line: int | None = None) -> None:
        self.path = path
        self.line = line
        if line is None:
            msg = f"File not found: {path}"
        else:
            msg = f"Line {line} not found in {path}"
        super().__init__(msg)


class UnknownItemError(FocusError):
    """No live item has the given id."""

    def __init__(self, item_id: str) -> None:
        self.item_id = item_id
        super().__init__(f"Item not found: {item_id}")
