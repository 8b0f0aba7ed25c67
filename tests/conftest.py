"""Pytest configuration and fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest

from contentreg.clock import ManualClock
from contentreg.config import RegistryConfig
from contentreg.identifiers import compute_content_hash
from contentreg.service import MeteredRegistry
from contentreg.sinks import MemorySink


def content_hash(label: str) -> str:
    """Deterministic content hash for a test label."""
    return compute_content_hash(f"test content: {label}")


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(start=1_000)


@pytest.fixture
def sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def registry(sink: MemorySink, clock: ManualClock) -> MeteredRegistry:
    """Fresh in-memory registry with a deterministic clock."""
    return MeteredRegistry(sink=sink, clock=clock)


@pytest.fixture
def h() -> str:
    return content_hash("doc")


@pytest.fixture
def config(tmp_path: Path) -> RegistryConfig:
    """Registry home under tmp_path with default settings."""
    return RegistryConfig(home=tmp_path / ".contentreg")
