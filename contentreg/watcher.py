"""
Journal follower.

Watches the directory holding events.jsonl and reports every event appended
after the follower started (or after a given byte offset). Used by
`contentreg events follow` to observe registry activity from another process.
"""

from __future__ import annotations

import logging
import threading
import time
from pathlib import Path
from typing import Callable

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import RegistryEvent
from .sinks import read_journal_lines

logger = logging.getLogger(__name__)


class JournalFollower(FileSystemEventHandler):
    """
    Tails one journal file.

    Key behaviors:
    - Only complete lines are parsed; a partial trailing line waits for the
      next notification
    - A journal that shrinks (replaced or truncated) is re-read from the start
    - Malformed lines are logged and skipped, never raised
    """

    def __init__(
        self,
        journal_path: Path,
        on_event: Callable[[RegistryEvent], None],
        *,
        from_start: bool = False,
    ):
        """
        Initialize the follower.

        Args:
            journal_path: Path to events.jsonl (need not exist yet)
            on_event: Callback invoked once per new event, in journal order
            from_start: Replay existing lines instead of starting at the end
        """
        super().__init__()
        self.journal_path = journal_path
        self.on_event = on_event
        self.offset = 0
        self._lock = threading.Lock()
        if not from_start and journal_path.exists():
            self.offset = journal_path.stat().st_size

    def _is_journal(self, path: str | bytes) -> bool:
        if isinstance(path, bytes):
            path = path.decode()
        return Path(path).resolve() == self.journal_path.resolve()

    def poll(self) -> int:
        """Read and dispatch anything appended since the last poll. Returns the event count."""
        with self._lock:
            if self.journal_path.exists() and self.journal_path.stat().st_size < self.offset:
                logger.warning("journal %s shrank, re-reading from the start", self.journal_path)
                self.offset = 0

            events, self.offset = read_journal_lines(self.journal_path, self.offset)
            for event in events:
                self.on_event(event)
            return len(events)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_journal(event.src_path):
            with self._lock:
                self.offset = 0
            self.poll()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory and self._is_journal(event.src_path):
            self.poll()


def follow_journal(
    journal_path: Path,
    on_event: Callable[[RegistryEvent], None],
    *,
    from_start: bool = False,
) -> tuple[Observer, JournalFollower]:
    """
    Start following a journal.

    Returns:
        Tuple of (observer, handler) - caller should call observer.stop() to stop following
    """
    journal_path.parent.mkdir(parents=True, exist_ok=True)
    handler = JournalFollower(journal_path, on_event, from_start=from_start)
    if from_start:
        handler.poll()

    observer = Observer()
    observer.schedule(handler, str(journal_path.parent), recursive=False)
    observer.start()
    return observer, handler


def run_follow_loop(
    journal_path: Path,
    on_event: Callable[[RegistryEvent], None],
    *,
    from_start: bool = False,
    interval: float = 0.5,
) -> None:
    """
    Follow the journal until interrupted.

    The handler is also polled on a timer so appends are picked up on
    platforms where modification notifications are coalesced.
    """
    observer, handler = follow_journal(journal_path, on_event, from_start=from_start)
    try:
        while True:
            time.sleep(interval)
            handler.poll()
    except KeyboardInterrupt:
        observer.stop()

    observer.join()
