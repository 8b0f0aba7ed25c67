"""Permission CLI commands."""

from __future__ import annotations

from rich.console import Console

from ..config import RegistryConfig
from ..permissions import Permission
from ..replay import open_registry
from .account_cmd import report_failure


def run_perm_grant(config: RegistryConfig, caller: str, content_hash: str, account: str, kind: str) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.grant_permission(caller, content_hash, account, Permission(kind))
    if not result:
        return report_failure("grant", result)
    if result.event is None:
        console.print(f"[dim]{account} already has {kind}[/dim]")
    else:
        console.print(f"[green]granted[/green] {kind} on {result.event.subject} to {account}")
    return 0


def run_perm_revoke(config: RegistryConfig, caller: str, content_hash: str, account: str, kind: str) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.revoke_permission(caller, content_hash, account, Permission(kind))
    if not result:
        return report_failure("revoke", result)
    if result.event is None:
        console.print(f"[dim]{account} does not have {kind}[/dim]")
    else:
        console.print(f"[yellow]revoked[/yellow] {kind} on {result.event.subject} from {account}")
    return 0


def run_perm_check(config: RegistryConfig, content_hash: str, account: str, kind: str) -> int:
    """Exit 0 if `account` holds the permission (owners always do), 1 otherwise."""
    allowed = open_registry(config).has_permission(account, content_hash, Permission(kind))
    print("yes" if allowed else "no")
    return 0 if allowed else 1
