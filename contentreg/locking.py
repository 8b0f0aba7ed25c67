"""
Exclusive lock on a registry home shared by every process that opens it.

Each journaled call holds the lock from catching up on the journal until its
own event is appended, so two processes can never both approve calls
against the same stale state.
"""

from __future__ import annotations

import fcntl
import logging
import threading
import time
from pathlib import Path
from typing import IO

from .errors import LockError

logger = logging.getLogger(__name__)


class HomeLock:
    """
    flock(2) on <home>/.lock, re-entrant for the thread that holds it.

    Example:
        lock = HomeLock(config.lock_path)
        with lock:
            ...  # no other process holds the lock here
    """

    def __init__(self, path: Path, timeout: float = 30.0, poll_interval: float = 0.05):
        self.path = path
        self.timeout = timeout
        self.poll_interval = poll_interval
        self._rlock = threading.RLock()
        self._depth = 0
        self._file: IO[str] | None = None

    @property
    def held(self) -> bool:
        return self._depth > 0

    def acquire(self) -> None:
        """
        Block until the lock is held.

        Raises:
            LockError: If another process keeps it longer than `timeout`
        """
        self._rlock.acquire()
        if self._depth:
            self._depth += 1
            return

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            f = open(self.path, "a+", encoding="utf-8")
            start = time.monotonic()
            while True:
                try:
                    fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    break
                except BlockingIOError:
                    if time.monotonic() - start > self.timeout:
                        f.close()
                        raise LockError(f"timed out after {self.timeout}s waiting for {self.path}") from None
                    time.sleep(self.poll_interval)
        except BaseException:
            self._rlock.release()
            raise

        self._file = f
        self._depth = 1
        logger.debug("locked %s", self.path)

    def release(self) -> None:
        if not self._depth:
            raise RuntimeError(f"release of unheld lock {self.path}")
        self._depth -= 1
        if not self._depth and self._file is not None:
            fcntl.flock(self._file.fileno(), fcntl.LOCK_UN)
            self._file.close()
            self._file = None
            logger.debug("unlocked %s", self.path)
        self._rlock.release()

    def __enter__(self) -> HomeLock:
        self.acquire()
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()
