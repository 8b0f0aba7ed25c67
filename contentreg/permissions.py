"""
Per-record permission table.

Each content record owns one table mapping account -> (can_read, can_write).
Absence of an entry means no permissions. The record owner always has full
access; that bypass is evaluated by the caller and never stored here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Permission(str, Enum):
    READ = "read"
    WRITE = "write"


@dataclass
class PermissionEntry:
    can_read: bool = False
    can_write: bool = False

    def get(self, kind: Permission) -> bool:
        return self.can_read if kind is Permission.READ else self.can_write

    def set(self, kind: Permission, value: bool) -> None:
        if kind is Permission.READ:
            self.can_read = value
        else:
            self.can_write = value

    def to_dict(self) -> dict[str, bool]:
        return {"read": self.can_read, "write": self.can_write}


class PermissionTable:
    def __init__(self) -> None:
        self._entries: dict[str, PermissionEntry] = {}

    def has_permission(self, account: str, kind: Permission) -> bool:
        entry = self._entries.get(account)
        return entry.get(Permission(kind)) if entry is not None else False

    def grant(self, account: str, kind: Permission) -> bool:
        """Set a bit, creating an empty entry first if needed. Always succeeds."""
        entry = self._entries.setdefault(account, PermissionEntry())
        entry.set(Permission(kind), True)
        return True

    def revoke(self, account: str, kind: Permission) -> bool:
        """
        Clear a bit.

        Returns False without creating an entry when the account has none.
        An entry whose bits are both cleared stays in the table.
        """
        entry = self._entries.get(account)
        if entry is None:
            return False
        entry.set(Permission(kind), False)
        return True

    def entry(self, account: str) -> PermissionEntry | None:
        return self._entries.get(account)

    def entries(self) -> dict[str, PermissionEntry]:
        return dict(sorted(self._entries.items()))

    def __contains__(self, account: object) -> bool:
        return account in self._entries

    def __len__(self) -> int:
        return len(self._entries)
