"""Event journal, cost and stats CLI commands."""

from __future__ import annotations

from datetime import datetime

from rich.console import Console
from rich.table import Table

from ..charging import BASE_COST_CENTS, Operation, cost
from ..config import RegistryConfig
from ..events import EVENT_TYPES, RegistryEvent, format_event
from ..replay import open_registry
from ..sinks import JournalSink
from ..watcher import run_follow_loop


def run_events_list(
    config: RegistryConfig,
    *,
    subject: str | None = None,
    event_type: str | None = None,
    last_n: int | None = None,
    output_json: bool = False,
) -> int:
    """
    Display journaled events, oldest first.

    Returns an exit code (1 when nothing matched).
    """
    console = Console()
    err = Console(stderr=True)

    if event_type is not None and event_type not in EVENT_TYPES:
        err.print(f"Unknown event type: {event_type}", style="bold red")
        err.print(f"Valid types: {', '.join(sorted(EVENT_TYPES))}", style="dim")
        return 2

    journal = JournalSink(config.journal_path)
    if last_n is not None:
        events = journal.query(subject=subject, event_type=event_type, order="desc", limit=last_n)
        events.reverse()
    else:
        events = journal.query(subject=subject, event_type=event_type)

    if not events:
        console.print("[dim]No events found.[/dim]")
        return 1

    for event in events:
        if output_json:
            print(event.to_json())
        else:
            console.print(format_event(event), highlight=False)
    return 0


def run_events_follow(config: RegistryConfig, *, from_start: bool = False) -> int:
    """
    Print events as other processes append them to the journal.

    Blocks until interrupted (Ctrl+C).
    """
    console = Console(stderr=True)
    console.print(f"[bold]Following[/bold] {config.journal_path}")
    console.print("[dim]Press Ctrl+C to stop[/dim]")
    console.print()

    event_count = 0

    def on_event(event: RegistryEvent) -> None:
        nonlocal event_count
        event_count += 1
        timestamp = datetime.now().strftime("%H:%M:%S")
        console.print(f"[dim]{timestamp}[/dim] {format_event(event)}", highlight=False)

    run_follow_loop(config.journal_path, on_event, from_start=from_start)
    console.print()
    console.print(f"[bold]Stopped.[/bold] Saw {event_count} events.")
    return 0


def run_cost(op: str, *, count: int = 0) -> int:
    err = Console(stderr=True)
    if count < 0:
        err.print("--count must be non-negative", style="bold red")
        return 2
    print(cost(Operation(op), count))
    return 0


def run_stats(config: RegistryConfig) -> int:
    console = Console()
    registry = open_registry(config)
    journal = JournalSink(config.journal_path)

    table = Table(title="Registry")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Users", str(registry.num_users()))
    table.add_row("Files", str(registry.num_files()))
    table.add_row("Total supply", f"{registry.total_supply():,}")
    table.add_row(f"Collected ({registry.system_account})", f"{registry.balance_of(registry.system_account):,}")
    table.add_row("Journaled events", str(journal.count()))
    table.add_row("", "")
    for op in Operation:
        table.add_row(f"  base {op.value}", f"{BASE_COST_CENTS[op] / 100:.2f}")

    console.print(table)
    return 0
