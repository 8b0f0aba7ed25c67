"""
Charging engine: usage-sensitive cost function plus the guarded debit.

    cost(op, t) = floor(base_cost(op) + 1.07 * t)

where t is the content record's access count before the operation (0 for
Create, since the record does not exist yet). The formula is evaluated in
integer hundredths so the result never depends on float rounding:

    cost(op, t) = (base_cents(op) + 107 * t) // 100

Both terms are non-negative, so floor division is truncation toward zero.
Every charge is paid into the system account; the ledger's total supply is
unchanged by charging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from .content import ContentRegistry
from .errors import ArithmeticOverflowError, ErrorKind
from .ledger import Ledger

logger = logging.getLogger(__name__)


class Operation(str, Enum):
    CREATE = "create"
    READ = "read"
    WRITE = "write"


# Base costs in hundredths of a unit (3.0, 2.0, 3.0)
BASE_COST_CENTS: dict[Operation, int] = {
    Operation.CREATE: 300,
    Operation.READ: 200,
    Operation.WRITE: 300,
}

# Per-access increment in hundredths (1.07)
ACCESS_STEP_CENTS = 107


def cost(op: Operation, access_count: int) -> int:
    """
    Cost of an operation on a record with the given access count.

    >>> [cost(Operation.WRITE, t) for t in range(3)]
    [3, 4, 5]
    """
    if access_count < 0:
        raise ValueError(f"access_count must be non-negative: {access_count}")
    return (BASE_COST_CENTS[Operation(op)] + ACCESS_STEP_CENTS * access_count) // 100


@dataclass(frozen=True)
class Assessment:
    """Outcome of checking a charge without applying it."""

    op: Operation
    access_count: int
    cost: int
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ChargingEngine:
    """
    Joins the ledger and the content registry at call time.

    The engine holds no state of its own. Callers must keep assess() and
    the matching apply() inside one critical section.
    """

    def __init__(self, ledger: Ledger, contents: ContentRegistry, system_account: str):
        self.ledger = ledger
        self.contents = contents
        self.system_account = system_account

    def quote(self, op: Operation, access_count: int = 0) -> int:
        return cost(op, access_count)

    def assess(self, account: str, content_hash: str, op: Operation) -> Assessment:
        """
        Check whether `account` can pay for `op` on `content_hash`.

        Read-only. A Read/Write on an unknown record is NOT_FOUND; Create
        prices the not-yet-inserted record at t = 0.
        """
        op = Operation(op)
        if op is Operation.CREATE:
            t = 0
        else:
            record = self.contents.get(content_hash)
            if record is None:
                return Assessment(op, 0, 0, ErrorKind.NOT_FOUND)
            t = record.access_count

        amount = cost(op, t)
        if not self.ledger.is_registered(account):
            return Assessment(op, t, amount, ErrorKind.NOT_FOUND)
        if not self.ledger.can_debit(account, amount):
            return Assessment(op, t, amount, ErrorKind.INSUFFICIENT_FUNDS)
        if account != self.system_account and not self.ledger.can_credit(self.system_account, amount):
            raise ArithmeticOverflowError(f"system account cannot absorb charge of {amount}")
        return Assessment(op, t, amount)

    def apply(self, account: str, assessment: Assessment) -> None:
        """Move an assessed charge from `account` to the system account."""
        if not assessment.ok:
            raise ValueError(f"cannot apply a failed assessment: {assessment.error}")
        if not self.ledger.debit(account, assessment.cost):
            raise RuntimeError(f"debit of {assessment.cost} from {account} failed after assessment")
        self.ledger.credit(self.system_account, assessment.cost)
        logger.debug(
            "charged %s %d for %s (t=%d)", account, assessment.cost, assessment.op.value, assessment.access_count
        )

    def charge(self, account: str, content_hash: str, op: Operation) -> bool:
        """
        Verify funds and charge in one step.

        Returns:
            False with no mutation when the record is missing (Read/Write),
            the account is unknown, or the balance is below the cost
        """
        assessment = self.assess(account, content_hash, op)
        if not assessment.ok:
            return False
        self.apply(account, assessment)
        return True
