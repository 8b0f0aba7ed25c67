from __future__ import annotations

from pathlib import Path

from contentreg.events import RegistryEvent
from contentreg.service import MeteredRegistry
from contentreg.sinks import JournalSink
from contentreg.watcher import JournalFollower

from conftest import content_hash


def _journaled_registry(path: Path) -> MeteredRegistry:
    return MeteredRegistry(sink=JournalSink(path))


def test_follower_starts_at_end(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    registry = _journaled_registry(path)
    registry.register("alice", 10)

    seen: list[RegistryEvent] = []
    follower = JournalFollower(path, seen.append)
    assert follower.poll() == 0

    registry.add_file("alice", content_hash("x"))
    assert follower.poll() == 1
    assert seen[0].event_type == "file.created"
    assert follower.poll() == 0


def test_follower_from_start_and_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    seen: list[RegistryEvent] = []
    follower = JournalFollower(path, seen.append, from_start=True)
    assert follower.poll() == 0

    registry = _journaled_registry(path)
    registry.register("alice", 10)
    registry.deposit("alice", 5)
    assert follower.poll() == 2
    assert [e.event_type for e in seen] == ["account.registered", "account.deposited"]


def test_follower_rereads_truncated_journal(tmp_path: Path) -> None:
    path = tmp_path / "events.jsonl"
    registry = _journaled_registry(path)
    registry.register("alice", 10)
    registry.register("bob", 10)

    seen: list[RegistryEvent] = []
    follower = JournalFollower(path, seen.append)
    path.write_text("", encoding="utf-8")
    _journaled_registry(path).register("carol", 1)

    assert follower.poll() == 1
    assert seen[0].subject == "carol"
