from __future__ import annotations

import pytest

from contentreg.charging import ChargingEngine, Operation, cost
from contentreg.content import ContentRegistry
from contentreg.errors import ArithmeticOverflowError, ErrorKind
from contentreg.ledger import MAX_BALANCE, Ledger

from conftest import content_hash


def _engine() -> tuple[ChargingEngine, Ledger, ContentRegistry]:
    ledger = Ledger()
    contents = ContentRegistry()
    ledger.register("system")
    return ChargingEngine(ledger, contents, "system"), ledger, contents


# =============================================================================
# Cost function
# =============================================================================


def test_successive_write_costs() -> None:
    assert [cost(Operation.WRITE, t) for t in range(3)] == [3, 4, 5]


@pytest.mark.parametrize(
    "op,t,expected",
    [
        (Operation.CREATE, 0, 3),
        (Operation.READ, 0, 2),
        (Operation.READ, 3, 5),  # floor(5.21)
        (Operation.READ, 5, 7),  # floor(7.35)
        (Operation.WRITE, 100, 110),  # floor(110.0)
        (Operation.READ, 1_000_000, 1_070_002),
    ],
)
def test_cost_values(op: Operation, t: int, expected: int) -> None:
    assert cost(op, t) == expected


def test_cost_exact_for_large_counts() -> None:
    t = 10**18 + 7
    assert cost(Operation.WRITE, t) == (300 + 107 * t) // 100


def test_cost_is_monotonic() -> None:
    costs = [cost(Operation.READ, t) for t in range(500)]
    assert costs == sorted(costs)


def test_cost_rejects_negative_count() -> None:
    with pytest.raises(ValueError):
        cost(Operation.READ, -1)


# =============================================================================
# Engine
# =============================================================================


def test_charge_moves_funds_to_system_account() -> None:
    engine, ledger, contents = _engine()
    h = content_hash("x")
    ledger.register("alice", 10)
    contents.create(h, "alice", 0)

    assert engine.charge("alice", h, Operation.READ) is True
    assert ledger.balance_of("alice") == 8
    assert ledger.balance_of("system") == 2
    assert ledger.total_supply() == 10


def test_assess_failures_do_not_mutate() -> None:
    engine, ledger, contents = _engine()
    h = content_hash("x")
    ledger.register("alice", 1)

    assert engine.assess("alice", h, Operation.READ).error is ErrorKind.NOT_FOUND

    contents.create(h, "alice", 0)
    assessment = engine.assess("alice", h, Operation.READ)
    assert assessment.error is ErrorKind.INSUFFICIENT_FUNDS
    assert assessment.cost == 2
    assert engine.assess("ghost", h, Operation.READ).error is ErrorKind.NOT_FOUND
    assert engine.charge("alice", h, Operation.READ) is False
    assert ledger.balance_of("alice") == 1
    assert ledger.balance_of("system") == 0


def test_create_is_priced_at_zero_accesses() -> None:
    engine, ledger, _ = _engine()
    ledger.register("alice", 3)
    assessment = engine.assess("alice", content_hash("new"), Operation.CREATE)
    assert assessment.ok
    assert assessment.cost == 3
    assert assessment.access_count == 0


def test_apply_rejects_failed_assessment() -> None:
    engine, ledger, _ = _engine()
    ledger.register("alice", 0)
    assessment = engine.assess("alice", content_hash("new"), Operation.CREATE)
    with pytest.raises(ValueError):
        engine.apply("alice", assessment)


def test_full_system_account_is_fatal() -> None:
    engine, ledger, _ = _engine()
    ledger.register("alice", 10)
    ledger.deposit("system", MAX_BALANCE)
    with pytest.raises(ArithmeticOverflowError):
        engine.assess("alice", content_hash("new"), Operation.CREATE)
    assert ledger.balance_of("alice") == 10
