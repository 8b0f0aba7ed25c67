"""
Immutable event types for the registry journal.

Every successful state-changing call emits exactly one event; failed calls
emit nothing. Each line of events.jsonl is one event, and the full registry
state can be recomputed by replaying them in order.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

# Content lifecycle events
FILE_CREATED = "file.created"
FILE_REMOVED = "file.removed"
FILE_MODIFIED = "file.modified"
FILE_READ = "file.read"

# Ledger events
ACCOUNT_REGISTERED = "account.registered"
ACCOUNT_DEPOSITED = "account.deposited"
ACCOUNT_WITHDRAWN = "account.withdrawn"

# Permission events
PERMISSION_GRANTED = "permission.granted"
PERMISSION_REVOKED = "permission.revoked"

# Journal header: settings the journal was written under
REGISTRY_CONFIGURED = "registry.configured"

FILE_EVENT_TYPES = frozenset({
    FILE_CREATED,
    FILE_REMOVED,
    FILE_MODIFIED,
    FILE_READ,
})

# All valid event types
EVENT_TYPES = frozenset({
    *FILE_EVENT_TYPES,
    ACCOUNT_REGISTERED,
    ACCOUNT_DEPOSITED,
    ACCOUNT_WITHDRAWN,
    PERMISSION_GRANTED,
    PERMISSION_REVOKED,
    REGISTRY_CONFIGURED,
})


@dataclass(frozen=True)
class RegistryEvent:
    """
    Immutable journal entry.

    `subject` is the content hash for file and permission events and the
    account identity for ledger events. `actor` is the caller that
    initiated the operation.
    """

    event_type: str  # One of EVENT_TYPES
    subject: str
    actor: str
    timestamp: int  # Host clock, milliseconds

    # Event-specific payload (see EVENT_PAYLOAD_FIELDS)
    payload: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate event structure."""
        if self.event_type not in EVENT_TYPES:
            raise ValueError(f"Invalid event_type: {self.event_type}")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, int):
            raise ValueError(f"timestamp must be integer milliseconds: {self.timestamp!r}")

    @property
    def is_file_event(self) -> bool:
        return self.event_type in FILE_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        """Serialize to JSON-compatible dict."""
        result: dict[str, Any] = {
            "event_type": self.event_type,
            "subject": self.subject,
            "actor": self.actor,
            "timestamp": self.timestamp,
        }
        if self.payload:
            result["payload"] = self.payload
        return result

    def to_json(self) -> str:
        """Serialize to JSON string (single line)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RegistryEvent:
        """Reconstruct from JSON dict."""
        return cls(
            event_type=data["event_type"],
            subject=data["subject"],
            actor=data["actor"],
            timestamp=data["timestamp"],
            payload=data.get("payload", {}),
        )

    @classmethod
    def from_json(cls, line: str) -> RegistryEvent:
        """Parse from JSON string."""
        return cls.from_dict(json.loads(line))


# Payload field documentation for each event type
EVENT_PAYLOAD_FIELDS = {
    FILE_CREATED: {
        "owner": "Account that created (and owns) the record",
        "cost": "Amount charged for the create",
    },
    FILE_REMOVED: {},
    FILE_MODIFIED: {
        "cost": "Amount charged for the write",
        "access_count": "Counter value after the write",
    },
    FILE_READ: {
        "cost": "Amount charged for the read",
        "access_count": "Counter value after the read",
    },
    ACCOUNT_REGISTERED: {
        "initial_balance": "Opening balance",
    },
    ACCOUNT_DEPOSITED: {
        "amount": "Amount added",
    },
    ACCOUNT_WITHDRAWN: {
        "amount": "Amount removed",
    },
    PERMISSION_GRANTED: {
        "account": "Account receiving the bit",
        "permission": "read | write",
    },
    PERMISSION_REVOKED: {
        "account": "Account losing the bit",
        "permission": "read | write",
    },
    REGISTRY_CONFIGURED: {
        "system_account": "Account credited with every charge",
        "enforce_permissions": "Whether owner/bit checks gate access",
    },
}


def create_event(
    event_type: str,
    subject: str,
    actor: str,
    timestamp: int,
    *,
    payload: dict[str, Any] | None = None,
) -> RegistryEvent:
    """Factory function for creating events."""
    return RegistryEvent(
        event_type=event_type,
        subject=subject,
        actor=actor,
        timestamp=timestamp,
        payload=payload or {},
    )


def format_event(event: RegistryEvent) -> str:
    """Format an event for human-readable display."""
    icon = {
        FILE_CREATED: "+",
        FILE_MODIFIED: "~",
        FILE_READ: ">",
        FILE_REMOVED: "-",
        ACCOUNT_REGISTERED: "$",
        ACCOUNT_DEPOSITED: "$",
        ACCOUNT_WITHDRAWN: "$",
        PERMISSION_GRANTED: "!",
        PERMISSION_REVOKED: "!",
        REGISTRY_CONFIGURED: "#",
    }.get(event.event_type, "?")

    line = f"{icon} [{event.timestamp}] {event.event_type} {event.subject} by {event.actor}"
    if event.payload:
        details = " ".join(f"{k}={v}" for k, v in sorted(event.payload.items()))
        line += f" ({details})"
    return line
