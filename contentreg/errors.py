"""
Error taxonomy for the registry core.

Domain failures (a missing account, a duplicate hash, an unaffordable
charge, a missing permission bit) are ordinary outcomes: public operations
report them as an ErrorKind on the returned CallResult and leave every store
untouched. Exceptions are reserved for conditions that would corrupt the
ledger or the journal if execution continued.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    """Non-fatal failure kinds reported by public operations."""

    ALREADY_EXISTS = "already_exists"  # Account or content hash already present
    NOT_FOUND = "not_found"  # Unregistered account or unknown content hash
    INSUFFICIENT_FUNDS = "insufficient_funds"  # Charge exceeds balance
    PERMISSION_DENIED = "permission_denied"  # Not the owner and bit not granted


class ContentRegError(Exception):
    """Base class for fatal registry errors."""


class ArithmeticOverflowError(ContentRegError):
    """A balance or access counter would exceed its representable range."""


class JournalError(ContentRegError):
    """The event journal could not be read or contains a malformed line."""


class ReplayError(ContentRegError):
    """A journaled event could not be re-applied faithfully."""


class ConfigError(ContentRegError):
    """Invalid registry configuration."""


class LockError(ContentRegError):
    """The registry home could not be locked for exclusive access."""
