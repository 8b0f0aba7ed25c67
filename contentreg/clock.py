"""Clock abstraction for the host-supplied call timestamp.

Production code uses SystemClock (the default). Tests and journal replay
inject ManualClock so every timestamp is deterministic.
"""

from __future__ import annotations

import threading
import time
from typing import Protocol


class Clock(Protocol):
    """Source of the per-call timestamp."""

    def now_ms(self) -> int:
        """Return the current time in integer milliseconds.

        Successive calls must never go backwards.
        """
        ...


class SystemClock:
    """Wall-clock milliseconds, clamped so readings never decrease."""

    def __init__(self, floor: int = 0) -> None:
        self._last = floor
        self._lock = threading.Lock()

    def now_ms(self) -> int:
        with self._lock:
            self._last = max(self._last, time.time_ns() // 1_000_000)
            return self._last


class ManualClock:
    """Controllable clock for deterministic testing.

    Example:
        clock = ManualClock(start=1_000)
        registry = MeteredRegistry(clock=clock)

        registry.add_file("alice", h)  # created_at == 1000
        clock.advance(500)
        registry.read_file("alice", h)  # event timestamp == 1500
    """

    def __init__(self, start: int = 0) -> None:
        self._current = start

    def now_ms(self) -> int:
        return self._current

    def advance(self, ms: int) -> None:
        """Advance by `ms` milliseconds.

        Raises:
            ValueError: If ms is negative.
        """
        if ms < 0:
            raise ValueError(f"Cannot advance time by negative amount: {ms}")
        self._current += ms

    def set(self, value: int) -> None:
        """Set an absolute time. Unlike advance(), this may move backwards."""
        self._current = value

