"""Change notifications for a vault: polling watcher and refresh debouncer."""

import asyncio
from collections.abc import Callable

from loguru import logger

from focus_todos.config import DEBOUNCE_SECONDS, POLL_INTERVAL_SECONDS
from focus_todos.models.document import DocumentEvent, DocumentEventKind
from focus_todos.protocols import DocumentStoreProtocol

EventCallback = Callable[[DocumentEvent], None]


class VaultWatcher:
    """Detect created, modified and deleted documents by diffing mtime snapshots."""

    def __init__(self, vault: DocumentStoreProtocol) -> None:
        self.vault = vault
        self._subscribers: list[EventCallback] = []
        self._snapshot: dict[str, float] = self.snapshot()

    def snapshot(self) -> dict[str, float]:
        return {doc.path: doc.mtime for doc in self.vault.list_documents("")}

    def subscribe(self, callback: EventCallback) -> None:
        self._subscribers.append(callback)

    def poll(self) -> list[DocumentEvent]:
        """Compare against the previous snapshot and notify subscribers."""
        current = self.snapshot()
        previous = self._snapshot
        self._snapshot = current

        events: list[DocumentEvent] = []
        for path, mtime in current.items():
            if path not in previous:
                events.append(DocumentEvent(DocumentEventKind.CREATED, path))
            elif previous[path] != mtime:
                events.append(DocumentEvent(DocumentEventKind.MODIFIED, path))
        events.extend(
            DocumentEvent(DocumentEventKind.DELETED, path)
            for path in previous
            if path not in current
        )

        for event in events:
            logger.debug("{} {}", event.kind, event.path)
            for callback in self._subscribers:
                callback(event)
        return events


class Debouncer:
    """Coalesce bursts of triggers into one call after a quiet period.

    Every trigger() restarts the timer. Must be used from a running event loop.
    """

    def __init__(self, callback: Callable[[], object], *, delay: float = DEBOUNCE_SECONDS) -> None:
        self.callback = callback
        self.delay = delay
        self._handle: asyncio.TimerHandle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        loop = asyncio.get_running_loop()
        if self._handle is not None:
            self._handle.cancel()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self.callback()
        except Exception:
            logger.exception("Debounced refresh failed")


async def watch_vault(
    vault: DocumentStoreProtocol,
    *,
    on_event: EventCallback,
    on_refresh: Callable[[], object],
    stop: asyncio.Event,
    interval: float = POLL_INTERVAL_SECONDS,
    delay: float = DEBOUNCE_SECONDS,
) -> None:
    """Poll the vault until ``stop`` is set.

    Each change is passed to ``on_event`` right away; ``on_refresh`` runs once
    per burst of changes, ``delay`` seconds after the last one.
    """
    watcher = VaultWatcher(vault)
    debouncer = Debouncer(on_refresh, delay=delay)

    def _handle(event: DocumentEvent) -> None:
        on_event(event)
        debouncer.trigger()

    watcher.subscribe(_handle)
    logger.info("Watching vault for changes")
    try:
        while not stop.is_set():
            watcher.poll()
            try:
                await asyncio.wait_for(stop.wait(), timeout=interval)
            except TimeoutError:
                pass
    finally:
        debouncer.cancel()
