"""Content CLI commands."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.table import Table

from ..charging import Operation
from ..config import RegistryConfig
from ..identifiers import compute_content_hash, short_hash
from ..replay import open_registry
from .account_cmd import report_failure


def _format_ms(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def run_file_add(
    config: RegistryConfig,
    caller: str,
    *,
    content_hash: str | None = None,
    path: Path | None = None,
) -> int:
    console = Console()
    err = Console(stderr=True)
    if (content_hash is None) == (path is None):
        err.print("Give exactly one of HASH or --path", style="bold red")
        return 2
    if path is not None:
        content_hash = compute_content_hash(path.read_bytes())

    registry = open_registry(config)
    result = registry.add_file(caller, content_hash)
    if not result:
        return report_failure("add", result)
    console.print(
        f"[green]added[/green] {result.event.subject} owned by {caller}; "
        f"charged {result.cost}, balance {registry.balance_of(caller)}"
    )
    return 0


def run_file_access(config: RegistryConfig, caller: str, content_hash: str, op: Operation) -> int:
    """Read or write a record (both charge and bump the access counter)."""
    console = Console()
    registry = open_registry(config)
    if op is Operation.WRITE:
        result = registry.write_file(caller, content_hash)
    else:
        result = registry.read_file(caller, content_hash)
    if not result:
        return report_failure(op.value, result)

    count = result.event.payload["access_count"]
    console.print(
        f"[green]{op.value}[/green] {short_hash(result.event.subject)} by {caller}; "
        f"charged {result.cost}, access count {count}, balance {registry.balance_of(caller)}"
    )
    return 0


def run_file_remove(config: RegistryConfig, caller: str, content_hash: str) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.remove_file(caller, content_hash)
    if not result:
        return report_failure("remove", result)
    console.print(f"[green]removed[/green] {result.event.subject}")
    return 0


def run_file_show(config: RegistryConfig, content_hash: str, *, output_json: bool = False) -> int:
    err = Console(stderr=True)
    registry = open_registry(config)
    info = registry.file_info(content_hash)
    if info is None:
        err.print(f"File not found: {content_hash}", style="bold red")
        return 1

    if output_json:
        print(json.dumps(info, indent=2, sort_keys=True))
        return 0

    console = Console()
    table = Table(title=info["content_hash"], show_header=False)
    table.add_column("field", style="bold")
    table.add_column("value")
    table.add_row("owner", info["owner"])
    table.add_row("created", _format_ms(info["created_at"]))
    table.add_row("access count", str(info["access_count"]))
    table.add_row("next read", str(registry.quote(Operation.READ, content_hash)))
    table.add_row("next write", str(registry.quote(Operation.WRITE, content_hash)))
    for account, bits in info["permissions"].items():
        flags = "".join(["r" if bits["read"] else "-", "w" if bits["write"] else "-"])
        table.add_row(f"  {account}", flags)
    console.print(table)
    return 0


def run_file_list(config: RegistryConfig, *, owner: str | None = None) -> int:
    console = Console()
    registry = open_registry(config)
    files = registry.list_files()
    if owner:
        files = [f for f in files if f["owner"] == owner]

    if not files:
        console.print("[dim]No files registered.[/dim]")
        return 0

    table = Table(title="Files")
    table.add_column("hash", style="cyan", no_wrap=True)
    table.add_column("owner", style="magenta")
    table.add_column("accesses", justify="right")
    table.add_column("grants", justify="right")
    table.add_column("created", style="dim")

    for f in files:
        table.add_row(
            short_hash(f["content_hash"]),
            f["owner"],
            str(f["access_count"]),
            str(len(f["permissions"])),
            _format_ms(f["created_at"]),
        )

    console.print(table)
    return 0
