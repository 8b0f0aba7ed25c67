"""
Tests for the JSONL journal sink.

- Append-only persistence, one line per event
- Indexed queries with composable filters and ordering
- Malformed lines surface as JournalError
- Incremental reads used by the follower
"""

from __future__ import annotations

from pathlib import Path

import pytest

from contentreg.errors import JournalError
from contentreg.events import (
    ACCOUNT_REGISTERED,
    FILE_CREATED,
    FILE_MODIFIED,
    FILE_READ,
    create_event,
)
from contentreg.sinks import JournalSink, read_journal_lines

from conftest import content_hash

H1 = content_hash("one")
H2 = content_hash("two")


@pytest.fixture
def journal(tmp_path: Path) -> JournalSink:
    return JournalSink(tmp_path / ".contentreg" / "events.jsonl")


@pytest.fixture
def populated_journal(journal: JournalSink) -> JournalSink:
    journal.append(create_event(ACCOUNT_REGISTERED, "alice", "alice", 100, payload={"initial_balance": 50}))
    journal.append(create_event(FILE_CREATED, H1, "alice", 200, payload={"owner": "alice", "cost": 3}))
    journal.append(create_event(FILE_CREATED, H2, "alice", 300, payload={"owner": "alice", "cost": 3}))
    journal.append_many([
        create_event(FILE_READ, H1, "bob", 400, payload={"cost": 2, "access_count": 1}),
        create_event(FILE_MODIFIED, H1, "alice", 500, payload={"cost": 4, "access_count": 2}),
    ])
    return journal


def test_append_creates_file_with_one_line_per_event(populated_journal: JournalSink) -> None:
    lines = populated_journal.path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 5
    assert populated_journal.count() == 5


def test_missing_journal_is_empty(journal: JournalSink) -> None:
    assert list(journal.iter_events()) == []
    assert journal.query() == []
    assert journal.count() == 0


def test_query_filters(populated_journal: JournalSink) -> None:
    assert [e.event_type for e in populated_journal.events_for(H1)] == [FILE_CREATED, FILE_READ, FILE_MODIFIED]
    assert [e.subject for e in populated_journal.query(event_type=FILE_CREATED)] == [H1, H2]
    assert [e.timestamp for e in populated_journal.query(actor="bob")] == [400]
    assert [e.timestamp for e in populated_journal.query(since=300, until=400)] == [300, 400]
    assert populated_journal.query(subject=H1, event_type=FILE_CREATED)[0].timestamp == 200
    assert [e.timestamp for e in populated_journal.query(where=lambda e: e.payload.get("cost", 0) > 2)] == [200, 300, 500]


def test_query_order_and_limit(populated_journal: JournalSink) -> None:
    assert [e.timestamp for e in populated_journal.query(order="desc", limit=2)] == [500, 400]
    assert populated_journal.query(limit=0) == []
    assert [e.timestamp for e in populated_journal.tail(2)] == [400, 500]


def test_indexes_follow_later_appends(populated_journal: JournalSink) -> None:
    assert len(populated_journal.query(subject=H2)) == 1
    populated_journal.append(create_event(FILE_READ, H2, "alice", 600, payload={"cost": 2, "access_count": 1}))
    assert len(populated_journal.query(subject=H2)) == 2


def test_malformed_line_raises(populated_journal: JournalSink) -> None:
    with populated_journal.path.open("a", encoding="utf-8") as f:
        f.write("{not json\n")
    fresh = JournalSink(populated_journal.path)
    with pytest.raises(JournalError, match=":6:"):
        list(fresh.iter_events())


def test_invalid_utf8_raises_journal_error(populated_journal: JournalSink) -> None:
    with populated_journal.path.open("ab") as f:
        f.write(b"\xff\xfe\n")
    fresh = JournalSink(populated_journal.path)
    with pytest.raises(JournalError, match=":6: malformed event"):
        list(fresh.iter_events())
    with pytest.raises(JournalError, match="malformed event"):
        fresh.read_from(0)


def test_read_from_is_strict_and_incremental(populated_journal: JournalSink) -> None:
    events, offset = populated_journal.read_from(0)
    assert len(events) == 5
    assert offset == populated_journal.size()
    assert populated_journal.read_from(offset) == ([], offset)

    with populated_journal.path.open("a", encoding="utf-8") as f:
        f.write('{"event_type": "file.read"')
    with pytest.raises(JournalError, match="truncated"):
        populated_journal.read_from(offset)


def test_read_journal_lines_is_incremental(populated_journal: JournalSink) -> None:
    path = populated_journal.path
    events, offset = read_journal_lines(path, 0)
    assert len(events) == 5
    assert offset == path.stat().st_size

    events, same = read_journal_lines(path, offset)
    assert events == []
    assert same == offset

    # A partial trailing line waits for its newline
    line = create_event(FILE_READ, H2, "bob", 700).to_json()
    with path.open("a", encoding="utf-8") as f:
        f.write(line[:10])
    events, same = read_journal_lines(path, offset)
    assert events == [] and same == offset

    with path.open("a", encoding="utf-8") as f:
        f.write(line[10:] + "\n{broken\n")
    events, new_offset = read_journal_lines(path, offset)
    assert [e.timestamp for e in events] == [700]
    assert new_offset == path.stat().st_size
