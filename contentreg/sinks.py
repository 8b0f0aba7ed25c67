"""
Event sinks.

The registry hands every event to a sink before it mutates any store, so a
sink that raises aborts the call with nothing changed. JournalSink is the
durable implementation: an append-only JSON-lines file that is the source
of truth for replay.

INVARIANT: JournalSink NEVER modifies existing journal lines.
The only write operations are append() and append_many().
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterator, Literal, Protocol, Sequence

from .errors import JournalError
from .events import RegistryEvent

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    def append(self, event: RegistryEvent) -> None:
        ...


class NullSink:
    """Discards events (used while replaying a journal into memory)."""

    def append(self, event: RegistryEvent) -> None:
        return None


class MemorySink:
    """Ordered in-process event log."""

    def __init__(self) -> None:
        self.events: list[RegistryEvent] = []

    def append(self, event: RegistryEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: str) -> list[RegistryEvent]:
        return [e for e in self.events if e.event_type == event_type]

    def __len__(self) -> int:
        return len(self.events)

    def __iter__(self) -> Iterator[RegistryEvent]:
        return iter(self.events)


class JournalSink:
    """Append-only JSONL journal with lazily built query indexes."""

    def __init__(self, path: Path):
        """
        Initialize journal.

        Args:
            path: Path to the events.jsonl file (created on first append)
        """
        self.path = path

        # Query indexes (lazy-loaded)
        self._events: list[RegistryEvent] = []
        self._by_subject: dict[str, list[int]] = {}
        self._by_event_type: dict[str, list[int]] = {}
        self._indexed: bool = False

    def _ensure_dir(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)

    def _ensure_indexed(self) -> None:
        """Build indexes on first use. Idempotent."""
        if self._indexed:
            return
        self._events = list(self.iter_events())
        for idx, event in enumerate(self._events):
            self._update_indexes(event, idx)
        self._indexed = True

    def _update_indexes(self, event: RegistryEvent, idx: int) -> None:
        self._by_subject.setdefault(event.subject, []).append(idx)
        self._by_event_type.setdefault(event.event_type, []).append(idx)

    def append(self, event: RegistryEvent) -> None:
        """
        Append an event to the journal.

        The line is flushed before returning.
        """
        self.append_many([event])

    def append_many(self, events: Sequence[RegistryEvent]) -> None:
        """Append multiple events in a single file operation."""
        if not events:
            return
        self._ensure_dir()
        with self.path.open("a", encoding="utf-8") as f:
            for event in events:
                f.write(event.to_json() + "\n")
            f.flush()

        # Update indexes if already built
        if self._indexed:
            start_idx = len(self._events)
            for i, event in enumerate(events):
                self._events.append(event)
                self._update_indexes(event, start_idx + i)

    def _parse(self, raw: bytes, where: str) -> RegistryEvent | None:
        try:
            line = raw.decode("utf-8").strip()
            return RegistryEvent.from_json(line) if line else None
        except (ValueError, KeyError, TypeError) as e:
            raise JournalError(f"{self.path}:{where}: malformed event: {e}") from e

    def iter_events(self) -> Iterator[RegistryEvent]:
        """
        Iterate over all events in append order.

        Raises:
            JournalError: If a line is not valid UTF-8 or not a valid event
        """
        if not self.path.exists():
            return

        with self.path.open("rb") as f:
            for lineno, raw in enumerate(f, start=1):
                event = self._parse(raw, str(lineno))
                if event is not None:
                    yield event

    def first(self) -> RegistryEvent | None:
        """The oldest event, or None for an empty journal."""
        events = self.iter_events()
        try:
            return next(events, None)
        finally:
            events.close()

    def read_from(self, offset: int) -> tuple[list[RegistryEvent], int]:
        """
        Parse everything appended after byte `offset`.

        Unlike read_journal_lines(), a malformed or unterminated line is an
        error: callers hold the home lock, so no writer can be mid-append.

        Returns:
            (events, new_offset)

        Raises:
            JournalError: If a line is malformed or the last line is truncated
        """
        if not self.path.exists():
            return [], offset

        with self.path.open("rb") as f:
            f.seek(offset)
            data = f.read()
        if data and not data.endswith(b"\n"):
            raise JournalError(f"{self.path}: truncated final line after byte {offset}")

        events: list[RegistryEvent] = []
        pos = offset
        for raw in data.splitlines(keepends=True):
            event = self._parse(raw, f"byte {pos}")
            if event is not None:
                events.append(event)
            pos += len(raw)
        return events, offset + len(data)

    def size(self) -> int:
        return self.path.stat().st_size if self.path.exists() else 0

    def refresh(self) -> None:
        """Drop query indexes after another process appended to the journal."""
        self._events = []
        self._by_subject = {}
        self._by_event_type = {}
        self._indexed = False

    def query(
        self,
        *,
        subject: str | None = None,
        event_type: str | None = None,
        actor: str | None = None,
        since: int | None = None,
        until: int | None = None,
        where: Callable[[RegistryEvent], bool] | None = None,
        limit: int | None = None,
        order: Literal["asc", "desc"] = "asc",
    ) -> list[RegistryEvent]:
        """
        Query events with composable filters.

        Args:
            subject: Filter by content hash or account
            event_type: Filter by event type
            actor: Filter by initiating account
            since: Events at or after this timestamp (ms)
            until: Events at or before this timestamp (ms)
            where: Custom filter predicate
            limit: Maximum number of events to return (applied after ordering)
            order: "asc" = append order, "desc" = newest first

        Returns:
            List of matching events in the requested order
        """
        self._ensure_indexed()
        if limit is not None and limit <= 0:
            return []

        candidate_indices: set[int] | None = None

        if subject is not None:
            indices = set(self._by_subject.get(subject, []))
            candidate_indices = indices if candidate_indices is None else candidate_indices & indices

        if event_type is not None:
            indices = set(self._by_event_type.get(event_type, []))
            candidate_indices = indices if candidate_indices is None else candidate_indices & indices

        if candidate_indices is None:
            candidate_indices = set(range(len(self._events)))

        sorted_indices = sorted(candidate_indices, reverse=(order == "desc"))

        results: list[RegistryEvent] = []
        for idx in sorted_indices:
            event = self._events[idx]

            if since is not None and event.timestamp < since:
                continue
            if until is not None and event.timestamp > until:
                continue
            if actor is not None and event.actor != actor:
                continue
            if where is not None and not where(event):
                continue

            results.append(event)
            if limit is not None and len(results) >= limit:
                break

        return results

    def events_for(self, subject: str) -> list[RegistryEvent]:
        """Complete audit trail for one content hash or account."""
        return self.query(subject=subject)

    def tail(self, n: int) -> list[RegistryEvent]:
        """The last `n` events in append order."""
        return list(reversed(self.query(order="desc", limit=n)))

    def count(self) -> int:
        """Count total events in journal."""
        return sum(1 for _ in self.iter_events())


def read_journal_lines(path: Path, offset: int) -> tuple[list[RegistryEvent], int]:
    """
    Parse complete lines appended after byte `offset`.

    A trailing partial line (a writer mid-append) is left for the next call.

    Returns:
        (events, new_offset)
    """
    if not path.exists():
        return [], offset

    with path.open("rb") as f:
        f.seek(offset)
        data = f.read()

    end = data.rfind(b"\n")
    if end < 0:
        return [], offset

    events: list[RegistryEvent] = []
    for raw in data[: end + 1].splitlines():
        raw = raw.strip()
        if not raw:
            continue
        try:
            events.append(RegistryEvent.from_json(raw.decode("utf-8")))
        except (ValueError, KeyError, TypeError) as e:
            logger.warning("skipping malformed journal line in %s: %s", path, e)
    return events, offset + end + 1
