"""Configuration constants and persisted settings for focus-todos."""

import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger

from focus_todos.models.ordering import DefaultSort

# Directory with the overlay database. First directory which is found is used.
DATA_DIRECTORIES: list[Path] = [
    Path("~/.local/share/focus-todos").expanduser(),
    Path("~/.focus-todos").expanduser(),
    Path("~/.config/focus-todos").expanduser(),
]

DEFAULT_DB_NAME: str = "focus.db"

# Quiet period after the last change notification before a refresh runs.
DEBOUNCE_SECONDS: float = 0.3

# How often the watcher re-stats the vault.
POLL_INTERVAL_SECONDS: float = 1.0

# Paths that write-back must never touch.
FORBIDDEN_PATH_PREFIXES: list[str] = [".obsidian/", ".trash/"]

VAULT_DIR_ENV = "FOCUS_VAULT_DIR"
DATA_DIR_ENV = "FOCUS_DATA_DIR"


def resolve_data_directory() -> Path:
    """Return the overlay data directory.

    ``FOCUS_DATA_DIR`` wins; otherwise the first existing entry of
    DATA_DIRECTORIES, falling back to the first entry.
    """
    env = os.environ.get(DATA_DIR_ENV)
    if env:
        return Path(env).expanduser()
    for candidate in DATA_DIRECTORIES:
        if candidate.is_dir():
            return candidate
    return DATA_DIRECTORIES[0]


def resolve_vault_directory() -> Path:
    """Return the vault root from ``FOCUS_VAULT_DIR`` or the current directory."""
    env = os.environ.get(VAULT_DIR_ENV)
    return Path(env).expanduser() if env else Path.cwd()


@dataclass
class Settings:
    """User settings controlling which documents are scanned and how items sort."""

    daily_notes_parent: str = ""
    backlog_files: list[str] = field(default_factory=lambda: ["TODO.md"])
    include_folders: list[str] = field(default_factory=list)
    default_sort: DefaultSort = DefaultSort.DATE
    daily_notes_days: int = 30

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "Settings":
        """Merge stored values over the defaults, ignoring unknown or invalid keys."""
        settings = cls()
        if not data:
            return settings
        for key, value in data.items():
            if key == "updated":
                continue
            try:
                settings.set_value(key, value)
            except (KeyError, ValueError, TypeError):
                logger.warning("Ignoring invalid setting {}={!r}", key, value)
        return settings

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["default_sort"] = str(self.default_sort)
        return data

    def set_value(self, key: str, value: Any) -> None:
        """Set a single setting, coercing strings the way the CLI passes them."""
        if key == "daily_notes_parent":
            self.daily_notes_parent = str(value).strip().strip("/")
        elif key in ("backlog_files", "include_folders"):
            if isinstance(value, str):
                value = value.split(",")
            cleaned = [str(v).strip() for v in value if str(v).strip()]
            setattr(self, key, cleaned)
        elif key == "default_sort":
            self.default_sort = DefaultSort(value)
        elif key == "daily_notes_days":
            self.daily_notes_days = max(0, int(value))
        else:
            msg = f"Unknown setting: {key!r}"
            raise KeyError(msg)
