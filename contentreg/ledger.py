"""
Account balance ledger.

Balances are non-negative integers in the smallest indivisible unit. Every
mutation is a single read-modify-write on one entry; callers that need
several ledger steps to appear atomic (the charging engine) hold the
registry lock around them.
"""

from __future__ import annotations

import logging
from typing import Iterator

from .errors import ArithmeticOverflowError

logger = logging.getLogger(__name__)

# Balances are unsigned 128-bit quantities
MAX_BALANCE = (1 << 128) - 1


def validate_amount(amount: int, what: str = "amount") -> None:
    """Reject non-integer or negative amounts (caller errors, not domain failures)."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise TypeError(f"{what} must be an int, got {type(amount).__name__}")
    if amount < 0:
        raise ValueError(f"{what} must be non-negative: {amount}")


def checked_add(balance: int, amount: int) -> int:
    """Add to a balance, raising instead of exceeding MAX_BALANCE."""
    total = balance + amount
    if total > MAX_BALANCE:
        raise ArithmeticOverflowError(f"balance overflow: {balance} + {amount}")
    return total


class Ledger:
    """Mapping from account identity to balance."""

    def __init__(self) -> None:
        self._balances: dict[str, int] = {}

    def is_registered(self, account: str) -> bool:
        return account in self._balances

    def register(self, account: str, initial_balance: int = 0) -> bool:
        """
        Create a ledger entry.

        Returns:
            False (no mutation) if the account is already registered
        """
        validate_amount(initial_balance, "initial_balance")
        if initial_balance > MAX_BALANCE:
            raise ArithmeticOverflowError(f"initial balance out of range: {initial_balance}")
        if account in self._balances:
            return False
        self._balances[account] = initial_balance
        logger.debug("registered %s with balance %d", account, initial_balance)
        return True

    def deposit(self, account: str, amount: int) -> bool:
        """Increase a balance; False if the account is not registered."""
        validate_amount(amount, "amount")
        if account not in self._balances:
            return False
        self._balances[account] = checked_add(self._balances[account], amount)
        return True

    def withdraw(self, account: str, amount: int) -> int:
        """
        Decrease a balance.

        Returns:
            The amount withdrawn, or 0 (no mutation) if the account is
            unknown or the amount exceeds its balance
        """
        validate_amount(amount, "amount")
        balance = self._balances.get(account)
        if balance is None or amount > balance:
            return 0
        self._balances[account] = balance - amount
        return amount

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def can_debit(self, account: str, amount: int) -> bool:
        balance = self._balances.get(account)
        return balance is not None and amount <= balance

    def can_credit(self, account: str, amount: int) -> bool:
        balance = self._balances.get(account)
        return balance is not None and balance + amount <= MAX_BALANCE

    def debit(self, account: str, amount: int) -> bool:
        """Guarded withdraw used by the charging engine."""
        validate_amount(amount, "amount")
        if not self.can_debit(account, amount):
            return False
        self._balances[account] -= amount
        return True

    def credit(self, account: str, amount: int) -> bool:
        """Counterpart of debit(); pays charges into the system account."""
        return self.deposit(account, amount)

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def accounts(self) -> list[str]:
        return sorted(self._balances)

    def total_supply(self) -> int:
        """Sum of all balances. Charges move funds, they never create or burn them."""
        return sum(self._balances.values())

    def __len__(self) -> int:
        return len(self._balances)

    def __contains__(self, account: object) -> bool:
        return account in self._balances

    def __iter__(self) -> Iterator[str]:
        return iter(self.accounts())
