"""
Content registry: metadata records keyed by content hash.

A record exists from a successful create() until a successful remove().
Removal deletes the record together with its permission table, so a hash
that was removed can be registered again and starts from a fresh counter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .errors import ArithmeticOverflowError
from .permissions import PermissionTable

# Access counters are unsigned 64-bit quantities
MAX_ACCESS_COUNT = (1 << 64) - 1


@dataclass
class ContentRecord:
    """Metadata for one content hash."""

    content_hash: str
    owner: str  # Set at creation, immutable
    created_at: int  # Host timestamp (ms)
    access_count: int = 0  # Successful reads + writes; drives the cost curve
    permissions: PermissionTable = field(default_factory=PermissionTable)

    def is_owner(self, account: str) -> bool:
        return account == self.owner

    def to_dict(self) -> dict[str, Any]:
        return {
            "content_hash": self.content_hash,
            "owner": self.owner,
            "created_at": self.created_at,
            "access_count": self.access_count,
            "permissions": {
                account: entry.to_dict()
                for account, entry in self.permissions.entries().items()
            },
        }


class ContentRegistry:
    def __init__(self) -> None:
        self._records: dict[str, ContentRecord] = {}

    def exists(self, content_hash: str) -> bool:
        return content_hash in self._records

    def get(self, content_hash: str) -> ContentRecord | None:
        return self._records.get(content_hash)

    def create(self, content_hash: str, owner: str, timestamp: int) -> bool:
        """Insert a record with a zero counter and an empty permission table."""
        if content_hash in self._records:
            return False
        self._records[content_hash] = ContentRecord(
            content_hash=content_hash,
            owner=owner,
            created_at=timestamp,
        )
        return True

    def can_bump(self, content_hash: str) -> bool:
        record = self._records.get(content_hash)
        return record is not None and record.access_count < MAX_ACCESS_COUNT

    def bump_access(self, content_hash: str) -> bool:
        """
        Increment the shared read/write counter.

        Raises:
            ArithmeticOverflowError: If the counter is already at MAX_ACCESS_COUNT
        """
        record = self._records.get(content_hash)
        if record is None:
            return False
        if record.access_count >= MAX_ACCESS_COUNT:
            raise ArithmeticOverflowError(f"access counter overflow for {content_hash}")
        record.access_count += 1
        return True

    def remove(self, content_hash: str) -> bool:
        return self._records.pop(content_hash, None) is not None

    def hashes(self) -> list[str]:
        return sorted(self._records)

    def records(self) -> list[ContentRecord]:
        return [self._records[h] for h in self.hashes()]

    def owned_by(self, account: str) -> list[ContentRecord]:
        return [r for h, r in sorted(self._records.items()) if r.owner == account]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, content_hash: object) -> bool:
        return content_hash in self._records
