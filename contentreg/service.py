"""
Public call surface of the metered content registry.

MeteredRegistry owns the ledger, the content registry and the charging
engine as one explicit context. Every public call:

1. runs under a single re-entrant lock (one writer at a time; the
   journaled subclass in replay.py extends this across processes),
2. checks all of its preconditions without touching any store,
3. hands its event to the sink,
4. applies its mutations, which cannot fail once checked.

A failed precondition returns a falsy CallResult and changes nothing. A
sink that raises in step 3 aborts the call before step 4, so an event is
journaled if and only if its effects are applied.

Permission checks (owner bypass, then the record's permission table) are
wired into reads, writes, removal and permission changes. Pass
enforce_permissions=False for billing-only behaviour.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

from .charging import ChargingEngine, Operation, cost
from .clock import Clock, SystemClock
from .content import ContentRecord, ContentRegistry
from .errors import ArithmeticOverflowError, ErrorKind
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
    RegistryEvent,
    create_event,
)
from .identifiers import SYSTEM_ACCOUNT, normalize_account, normalize_hash
from .ledger import MAX_BALANCE, Ledger, validate_amount
from .permissions import Permission
from .sinks import EventSink, MemorySink

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallResult:
    """
    Outcome of a public call.

    Truthy iff the call succeeded. `cost` is the charge applied (or, for an
    INSUFFICIENT_FUNDS failure, the charge that could not be paid);
    `amount` is the ledger amount moved by register/deposit/withdraw.
    """

    ok: bool
    error: ErrorKind | None = None
    cost: int = 0
    amount: int = 0
    event: RegistryEvent | None = None

    def __bool__(self) -> bool:
        return self.ok

    @classmethod
    def fail(cls, error: ErrorKind, *, cost: int = 0) -> CallResult:
        return cls(ok=False, error=error, cost=cost)


class MeteredRegistry:
    def __init__(
        self,
        sink: EventSink | None = None,
        clock: Clock | None = None,
        *,
        system_account: str = SYSTEM_ACCOUNT,
        enforce_permissions: bool = True,
    ):
        self.system_account = normalize_account(system_account)
        self.enforce_permissions = enforce_permissions
        self.sink: EventSink = sink if sink is not None else MemorySink()
        self.clock: Clock = clock if clock is not None else SystemClock()

        self.ledger = Ledger()
        self.contents = ContentRegistry()
        self.charging = ChargingEngine(self.ledger, self.contents, self.system_account)
        self.ledger.register(self.system_account, 0)

        self._rlock = threading.RLock()

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Serialize one call against every other call on this registry."""
        with self._rlock:
            yield

    def _publish(self, event: RegistryEvent) -> None:
        self.sink.append(event)

    def _emit(
        self,
        event_type: str,
        subject: str,
        actor: str,
        timestamp: int,
        payload: dict[str, Any] | None = None,
    ) -> RegistryEvent:
        event = create_event(event_type, subject, actor, timestamp, payload=payload)
        self._publish(event)
        logger.info("%s %s by %s", event_type, subject, actor)
        return event

    def _failed(self, op: str, error: ErrorKind, *, cost: int = 0, **context: Any) -> CallResult:
        logger.debug("%s failed: %s %s", op, error.value, context)
        return CallResult.fail(error, cost=cost)

    # -------------------------------------------------------------------------
    # Ledger operations
    # -------------------------------------------------------------------------

    def register(self, account: str, initial_balance: int = 0) -> CallResult:
        account = normalize_account(account)
        validate_amount(initial_balance, "initial_balance")
        if initial_balance > MAX_BALANCE:
            raise ArithmeticOverflowError(f"initial balance out of range: {initial_balance}")

        with self._locked():
            if self.ledger.is_registered(account):
                return self._failed("register", ErrorKind.ALREADY_EXISTS, account=account)

            event = self._emit(
                ACCOUNT_REGISTERED,
                account,
                account,
                self.clock.now_ms(),
                {"initial_balance": initial_balance},
            )
            self.ledger.register(account, initial_balance)
            return CallResult(ok=True, amount=initial_balance, event=event)

    def deposit(self, account: str, amount: int) -> CallResult:
        account = normalize_account(account)
        validate_amount(amount)

        with self._locked():
            if not self.ledger.is_registered(account):
                return self._failed("deposit", ErrorKind.NOT_FOUND, account=account)
            if not self.ledger.can_credit(account, amount):
                raise ArithmeticOverflowError(f"deposit of {amount} would overflow balance of {account}")

            event = self._emit(ACCOUNT_DEPOSITED, account, account, self.clock.now_ms(), {"amount": amount})
            self.ledger.deposit(account, amount)
            return CallResult(ok=True, amount=amount, event=event)

    def withdraw(self, account: str, amount: int) -> CallResult:
        """Withdraw `amount`; result.amount is the amount withdrawn (0 on failure)."""
        account = normalize_account(account)
        validate_amount(amount)

        with self._locked():
            if not self.ledger.is_registered(account):
                return self._failed("withdraw", ErrorKind.NOT_FOUND, account=account)
            if not self.ledger.can_debit(account, amount):
                return self._failed("withdraw", ErrorKind.INSUFFICIENT_FUNDS, account=account, amount=amount)

            event = self._emit(ACCOUNT_WITHDRAWN, account, account, self.clock.now_ms(), {"amount": amount})
            withdrawn = self.ledger.withdraw(account, amount)
            return CallResult(ok=True, amount=withdrawn, event=event)

    # -------------------------------------------------------------------------
    # Content operations
    # -------------------------------------------------------------------------

    def add_file(self, caller: str, content_hash: str) -> CallResult:
        """Register a content hash owned by `caller`, charging the Create cost."""
        caller = normalize_account(caller)
        content_hash = normalize_hash(content_hash)

        with self._locked():
            if not self.ledger.is_registered(caller):
                return self._failed("add_file", ErrorKind.NOT_FOUND, caller=caller)
            if self.contents.exists(content_hash):
                return self._failed("add_file", ErrorKind.ALREADY_EXISTS, hash=content_hash)

            assessment = self.charging.assess(caller, content_hash, Operation.CREATE)
            if not assessment.ok:
                return self._failed("add_file", assessment.error, cost=assessment.cost, caller=caller)

            now = self.clock.now_ms()
            event = self._emit(
                FILE_CREATED,
                content_hash,
                caller,
                now,
                {"owner": caller, "cost": assessment.cost},
            )
            self.charging.apply(caller, assessment)
            self.contents.create(content_hash, caller, now)
            return CallResult(ok=True, cost=assessment.cost, event=event)

    def remove_file(self, caller: str, content_hash: str) -> CallResult:
        """Delete a record and its permission table. Removal is not charged."""
        caller = normalize_account(caller)
        content_hash = normalize_hash(content_hash)

        with self._locked():
            if not self.ledger.is_registered(caller):
                return self._failed("remove_file", ErrorKind.NOT_FOUND, caller=caller)
            record = self.contents.get(content_hash)
            if record is None:
                return self._failed("remove_file", ErrorKind.NOT_FOUND, hash=content_hash)
            if self.enforce_permissions and not record.is_owner(caller):
                return self._failed("remove_file", ErrorKind.PERMISSION_DENIED, caller=caller)

            event = self._emit(FILE_REMOVED, content_hash, caller, self.clock.now_ms())
            self.contents.remove(content_hash)
            return CallResult(ok=True, event=event)

    def write_file(self, caller: str, content_hash: str) -> CallResult:
        return self._access(caller, content_hash, Operation.WRITE)

    def read_file(self, caller: str, content_hash: str) -> CallResult:
        return self._access(caller, content_hash, Operation.READ)

    def _access(self, caller: str, content_hash: str, op: Operation) -> CallResult:
        """Shared read/write path: permission check, charge, counter bump."""
        caller = normalize_account(caller)
        content_hash = normalize_hash(content_hash)
        name = f"{op.value}_file"
        needed = Permission.WRITE if op is Operation.WRITE else Permission.READ
        event_type = FILE_MODIFIED if op is Operation.WRITE else FILE_READ

        with self._locked():
            if not self.ledger.is_registered(caller):
                return self._failed(name, ErrorKind.NOT_FOUND, caller=caller)
            record = self.contents.get(content_hash)
            if record is None:
                return self._failed(name, ErrorKind.NOT_FOUND, hash=content_hash)
            if self.enforce_permissions and not self._allowed(record, caller, needed):
                return self._failed(name, ErrorKind.PERMISSION_DENIED, caller=caller)

            assessment = self.charging.assess(caller, content_hash, op)
            if not assessment.ok:
                return self._failed(name, assessment.error, cost=assessment.cost, caller=caller)
            if not self.contents.can_bump(content_hash):
                raise ArithmeticOverflowError(f"access counter overflow for {content_hash}")

            event = self._emit(
                event_type,
                content_hash,
                caller,
                self.clock.now_ms(),
                {"cost": assessment.cost, "access_count": record.access_count + 1},
            )
            self.charging.apply(caller, assessment)
            self.contents.bump_access(content_hash)
            return CallResult(ok=True, cost=assessment.cost, event=event)

    # -------------------------------------------------------------------------
    # Permission operations
    # -------------------------------------------------------------------------

    def grant_permission(self, caller: str, content_hash: str, account: str, kind: Permission | str) -> CallResult:
        """
        Give `account` a permission bit on a record.

        Granting a bit that is already set succeeds without emitting an event.
        """
        caller = normalize_account(caller)
        content_hash = normalize_hash(content_hash)
        account = normalize_account(account)
        kind = Permission(kind)

        with self._locked():
            record = self.contents.get(content_hash)
            if record is None:
                return self._failed("grant_permission", ErrorKind.NOT_FOUND, hash=content_hash)
            if self.enforce_permissions and not record.is_owner(caller):
                return self._failed("grant_permission", ErrorKind.PERMISSION_DENIED, caller=caller)
            if record.permissions.has_permission(account, kind):
                return CallResult(ok=True)

            event = self._emit(
                PERMISSION_GRANTED,
                content_hash,
                caller,
                self.clock.now_ms(),
                {"account": account, "permission": kind.value},
            )
            record.permissions.grant(account, kind)
            return CallResult(ok=True, event=event)

    def revoke_permission(self, caller: str, content_hash: str, account: str, kind: Permission | str) -> CallResult:
        """
        Clear a permission bit.

        NOT_FOUND when the record is missing or `account` has no entry.
        Clearing a bit that is already clear succeeds without an event.
        """
        caller = normalize_account(caller)
        content_hash = normalize_hash(content_hash)
        account = normalize_account(account)
        kind = Permission(kind)

        with self._locked():
            record = self.contents.get(content_hash)
            if record is None:
                return self._failed("revoke_permission", ErrorKind.NOT_FOUND, hash=content_hash)
            if self.enforce_permissions and not record.is_owner(caller):
                return self._failed("revoke_permission", ErrorKind.PERMISSION_DENIED, caller=caller)
            if account not in record.permissions:
                return self._failed("revoke_permission", ErrorKind.NOT_FOUND, account=account)
            if not record.permissions.has_permission(account, kind):
                return CallResult(ok=True)

            event = self._emit(
                PERMISSION_REVOKED,
                content_hash,
                caller,
                self.clock.now_ms(),
                {"account": account, "permission": kind.value},
            )
            record.permissions.revoke(account, kind)
            return CallResult(ok=True, event=event)

    @staticmethod
    def _allowed(record: ContentRecord, account: str, kind: Permission) -> bool:
        return record.is_owner(account) or record.permissions.has_permission(account, kind)

    # -------------------------------------------------------------------------
    # Read-only queries
    # -------------------------------------------------------------------------

    def num_users(self) -> int:
        """Registered accounts, not counting the system account."""
        with self._locked():
            return len(self.ledger) - 1

    def num_files(self) -> int:
        with self._locked():
            return len(self.contents)

    def is_user_registered(self, account: str) -> bool:
        """
        Whether `account` has a ledger entry.

        True for the system account too: it is registered (so it cannot be
        registered again) even though num_users() does not count it.
        """
        account = normalize_account(account)
        with self._locked():
            return self.ledger.is_registered(account)

    def balance_of(self, account: str) -> int:
        account = normalize_account(account)
        with self._locked():
            return self.ledger.balance_of(account)

    def has_permission(self, account: str, content_hash: str, kind: Permission | str) -> bool:
        """Owner always true; unknown record always false."""
        account = normalize_account(account)
        content_hash = normalize_hash(content_hash)
        with self._locked():
            record = self.contents.get(content_hash)
            if record is None:
                return False
            return self._allowed(record, account, Permission(kind))

    def file_info(self, content_hash: str) -> dict[str, Any] | None:
        content_hash = normalize_hash(content_hash)
        with self._locked():
            record = self.contents.get(content_hash)
            return record.to_dict() if record is not None else None

    def access_count(self, content_hash: str) -> int | None:
        content_hash = normalize_hash(content_hash)
        with self._locked():
            record = self.contents.get(content_hash)
            return record.access_count if record is not None else None

    def quote(self, op: Operation | str, content_hash: str | None = None) -> int | None:
        """
        Price the next `op` without charging.

        Returns None for a Read/Write quote on an unknown record.
        """
        op = Operation(op)
        if op is Operation.CREATE:
            return cost(op, 0)
        if content_hash is None:
            return None
        count = self.access_count(content_hash)
        return cost(op, count) if count is not None else None

    def list_files(self) -> list[dict[str, Any]]:
        with self._locked():
            return [record.to_dict() for record in self.contents.records()]

    def balances(self) -> dict[str, int]:
        with self._locked():
            return {account: self.ledger.balance_of(account) for account in self.ledger.accounts()}

    def total_supply(self) -> int:
        with self._locked():
            return self.ledger.total_supply()
