"""
Rebuild registry state from the event journal.

State is never stored directly: it is recomputed by re-applying journaled
events, in order, through the same public operations that produced them.
Each call runs with the clock pinned to the event's timestamp, so record
creation times and charges come out identical.

A journal starts with a registry.configured header recording the system
account and the permission mode it was written under. Replay always uses
those settings; a configuration that disagrees is rejected rather than
silently reinterpreting history.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from itertools import chain
from typing import Any, Callable, Iterable, Iterator

from .clock import ManualClock, SystemClock
from .config import RegistryConfig
from .errors import ConfigError, ReplayError
from .events import (
    ACCOUNT_DEPOSITED,
    ACCOUNT_REGISTERED,
    ACCOUNT_WITHDRAWN,
    FILE_CREATED,
    FILE_MODIFIED,
    FILE_READ,
    FILE_REMOVED,
    PERMISSION_GRANTED,
    PERMISSION_REVOKED,
    REGISTRY_CONFIGURED,
    RegistryEvent,
    create_event,
)
from .identifiers import SYSTEM_ACCOUNT
from .locking import HomeLock
from .service import CallResult, MeteredRegistry
from .sinks import JournalSink, NullSink

logger = logging.getLogger(__name__)


_HANDLERS: dict[str, Callable[[MeteredRegistry, RegistryEvent], CallResult]] = {
    ACCOUNT_REGISTERED: lambda r, e: r.register(e.subject, e.payload["initial_balance"]),
    ACCOUNT_DEPOSITED: lambda r, e: r.deposit(e.subject, e.payload["amount"]),
    ACCOUNT_WITHDRAWN: lambda r, e: r.withdraw(e.subject, e.payload["amount"]),
    FILE_CREATED: lambda r, e: r.add_file(e.actor, e.subject),
    FILE_REMOVED: lambda r, e: r.remove_file(e.actor, e.subject),
    FILE_MODIFIED: lambda r, e: r.write_file(e.actor, e.subject),
    FILE_READ: lambda r, e: r.read_file(e.actor, e.subject),
    PERMISSION_GRANTED: lambda r, e: r.grant_permission(
        e.actor, e.subject, e.payload["account"], e.payload["permission"]
    ),
    PERMISSION_REVOKED: lambda r, e: r.revoke_permission(
        e.actor, e.subject, e.payload["account"], e.payload["permission"]
    ),
}


def header_event(system_account: str, enforce_permissions: bool, timestamp: int) -> RegistryEvent:
    return create_event(
        REGISTRY_CONFIGURED,
        system_account,
        system_account,
        timestamp,
        payload={"system_account": system_account, "enforce_permissions": enforce_permissions},
    )


def journal_settings(first: RegistryEvent | None) -> dict[str, Any] | None:
    """
    Settings recorded by a journal's header event.

    Returns None when the journal is empty or predates headers.

    Raises:
        ReplayError: If the header payload is malformed
    """
    if first is None or first.event_type != REGISTRY_CONFIGURED:
        return None
    system_account = first.payload.get("system_account")
    enforce = first.payload.get("enforce_permissions")
    if not isinstance(system_account, str) or not isinstance(enforce, bool):
        raise ReplayError(f"event 1 ({REGISTRY_CONFIGURED}): malformed header {first.payload}")
    return {"system_account": system_account, "enforce_permissions": enforce}


def _resolve_settings(
    recorded: dict[str, Any] | None,
    system_account: str | None,
    enforce_permissions: bool | None,
) -> tuple[str, bool]:
    if recorded is None:
        return (
            system_account if system_account is not None else SYSTEM_ACCOUNT,
            enforce_permissions if enforce_permissions is not None else True,
        )

    for key, wanted in (("system_account", system_account), ("enforce_permissions", enforce_permissions)):
        if wanted is not None and wanted != recorded[key]:
            raise ConfigError(
                f"{key} is configured as {wanted!r} but the journal was written with {recorded[key]!r}; "
                f"settings cannot change once events are journaled"
            )
    return recorded["system_account"], recorded["enforce_permissions"]


def _fold(
    registry: MeteredRegistry,
    events: Iterable[RegistryEvent],
    clock: ManualClock,
    *,
    start: int = 1,
) -> int:
    """Re-apply events to `registry`, numbering them from `start`. Returns the count applied."""
    count = 0
    for n, event in enumerate(events, start=start):
        if event.timestamp < clock.now_ms():
            raise ReplayError(f"event {n}: timestamp {event.timestamp} goes backwards")
        clock.set(event.timestamp)

        if event.event_type == REGISTRY_CONFIGURED:
            if n != 1:
                raise ReplayError(f"event {n}: {REGISTRY_CONFIGURED} is only valid as the first event")
            recorded = journal_settings(event)
            if recorded != {
                "system_account": registry.system_account,
                "enforce_permissions": registry.enforce_permissions,
            }:
                raise ConfigError(
                    f"journal header {recorded} does not match this registry "
                    f"(system_account={registry.system_account!r}, enforce_permissions={registry.enforce_permissions!r})"
                )
            count += 1
            continue

        handler = _HANDLERS.get(event.event_type)
        if handler is None:
            raise ReplayError(f"event {n}: unknown event type {event.event_type!r}")

        try:
            result = handler(registry, event)
        except (KeyError, TypeError, ValueError) as e:
            raise ReplayError(f"event {n} ({event.event_type} {event.subject}): malformed: {e}") from e

        if not result:
            raise ReplayError(
                f"event {n} ({event.event_type} {event.subject}) did not re-apply: {result.error.value}"
            )
        recorded_cost = event.payload.get("cost")
        if recorded_cost is not None and recorded_cost != result.cost:
            raise ReplayError(
                f"event {n} ({event.event_type} {event.subject}): recorded cost {recorded_cost} != recomputed {result.cost}"
            )
        count += 1
    return count


def replay(
    events: Iterable[RegistryEvent],
    *,
    system_account: str | None = None,
    enforce_permissions: bool | None = None,
) -> MeteredRegistry:
    """
    Fold a sequence of events into a fresh registry.

    Settings come from the header event when there is one (explicit
    arguments must then agree with it), otherwise from the arguments or
    their defaults. The returned registry has a NullSink and a ManualClock
    left at the last event's timestamp; callers attach a real sink and
    clock before use.

    Raises:
        ReplayError: If an event fails to re-apply, its recorded charge
            differs from the recomputed one, or it is malformed
        ConfigError: If explicit settings contradict the header
    """
    events = iter(events)
    first = next(events, None)
    system_account, enforce = _resolve_settings(journal_settings(first), system_account, enforce_permissions)

    clock = ManualClock()
    registry = MeteredRegistry(
        sink=NullSink(),
        clock=clock,
        system_account=system_account,
        enforce_permissions=enforce,
    )
    if first is not None:
        count = _fold(registry, chain([first], events), clock)
        logger.debug("replayed %d events", count)
    return registry


class JournaledRegistry(MeteredRegistry):
    """
    Registry backed by a journal that other processes may append to.

    Every call takes the home lock, folds in whatever was appended since
    this instance last looked, then runs against that up-to-date state and
    appends its own event before the lock is released.
    """

    def __init__(
        self,
        journal: JournalSink,
        lock: HomeLock,
        *,
        system_account: str = SYSTEM_ACCOUNT,
        enforce_permissions: bool = True,
    ):
        super().__init__(
            sink=journal,
            clock=SystemClock(),
            system_account=system_account,
            enforce_permissions=enforce_permissions,
        )
        self.journal = journal
        self.home_lock = lock
        self._offset = 0  # Journal bytes already folded into memory
        self._seen = 0  # Events already folded (or appended by us)
        self._last_ts = 0
        self._depth = 0
        self._replaying = False

    @contextmanager
    def _locked(self) -> Iterator[None]:
        with self._rlock:
            if self._depth:
                self._depth += 1
                try:
                    yield
                finally:
                    self._depth -= 1
                return

            with self.home_lock:
                self._depth = 1
                try:
                    self._catch_up()
                    yield
                finally:
                    self._depth = 0

    def _catch_up(self) -> None:
        events, offset = self.journal.read_from(self._offset)
        if not events:
            self._offset = offset
            return

        clock = ManualClock(self._last_ts)
        previous = self.clock
        self.clock = clock
        self._replaying = True
        try:
            self._seen += _fold(self, events, clock, start=self._seen + 1)
        finally:
            self._replaying = False
        self._offset = offset
        self._last_ts = clock.now_ms()
        self.clock = SystemClock(floor=max(self._last_ts, previous.now_ms()))
        self.journal.refresh()
        logger.debug("caught up %d events from %s", len(events), self.journal.path)

    def _publish(self, event: RegistryEvent) -> None:
        if self._replaying:
            return
        batch = [event]
        if self._seen == 0:
            batch.insert(0, header_event(self.system_account, self.enforce_permissions, event.timestamp))
        self.journal.append_many(batch)
        self._seen += len(batch)
        self._offset = self.journal.size()
        self._last_ts = event.timestamp

    def sync(self) -> None:
        """Fold in everything other processes have journaled."""
        with self._locked():
            pass


def open_registry(config: RegistryConfig) -> JournaledRegistry:
    """
    Load the registry under config.home and attach its journal.

    New calls append to the same journal the state was rebuilt from, with
    timestamps that never precede the last journaled event.

    Raises:
        ConfigError: If config.system_account or config.enforce_permissions
            differ from the settings the journal was written under
    """
    journal = JournalSink(config.journal_path)
    lock = HomeLock(config.lock_path)
    with lock:
        system_account, enforce = _resolve_settings(
            journal_settings(journal.first()),
            config.system_account,
            config.enforce_permissions,
        )
        registry = JournaledRegistry(
            journal,
            lock,
            system_account=system_account,
            enforce_permissions=enforce,
        )
        registry.sync()
    return registry
