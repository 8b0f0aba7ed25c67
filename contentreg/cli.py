"""CLI entrypoint for contentreg."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Any, Callable

import click

from . import __version__
from .errors import ContentRegError

ACCOUNT_OPTION = click.option("--as", "caller", required=True, metavar="ID", help="Calling account")
PERMISSION_CHOICE = click.Choice(["read", "write"])


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return

    from rich.console import Console
    from rich.logging import RichHandler

    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _run(func: Callable[..., int], *args: Any, **kwargs: Any) -> None:
    """Call a run_* implementation and exit with its code."""
    try:
        exit_code = func(*args, **kwargs)
    except (ContentRegError, ValueError) as e:
        raise click.ClickException(str(e)) from e
    sys.exit(exit_code)


@click.group()
@click.version_option(__version__, prog_name="contentreg")
@click.option(
    "--home",
    type=click.Path(file_okay=False, dir_okay=True, path_type=Path),
    default=None,
    help="Registry home directory (defaults to $CONTENTREG_HOME or ./.contentreg)",
)
@click.option("--verbose", is_flag=True, help="Log every registry call to stderr")
@click.pass_context
def cli(ctx: click.Context, home: Path | None, verbose: bool) -> None:
    """contentreg - metered, permissioned content registry.

    Accounts pay for every create, read and write of a content hash. Each
    access makes the next one on the same hash more expensive. All state
    is rebuilt from the append-only event journal in the home directory.
    """
    from .config import load_config

    _configure_logging(verbose)
    ctx.ensure_object(dict)
    try:
        ctx.obj["config"] = load_config(home=home)
    except ContentRegError as e:
        raise click.ClickException(str(e)) from e


# =============================================================================
# account
# =============================================================================


@cli.group()
def account() -> None:
    """Register accounts and move funds."""
    pass


@account.command("register")
@click.argument("account_id")
@click.option("--balance", type=click.IntRange(min=0), default=0, show_default=True, help="Initial balance")
@click.pass_context
def account_register(ctx: click.Context, account_id: str, balance: int) -> None:
    """Register ACCOUNT_ID with an initial balance."""
    from .commands.account_cmd import run_account_register

    _run(run_account_register, ctx.obj["config"], account_id, balance=balance)


@account.command("deposit")
@click.argument("account_id")
@click.argument("amount", type=click.IntRange(min=0))
@click.pass_context
def account_deposit(ctx: click.Context, account_id: str, amount: int) -> None:
    """Add AMOUNT to a registered account."""
    from .commands.account_cmd import run_account_deposit

    _run(run_account_deposit, ctx.obj["config"], account_id, amount)


@account.command("withdraw")
@click.argument("account_id")
@click.argument("amount", type=click.IntRange(min=0))
@click.pass_context
def account_withdraw(ctx: click.Context, account_id: str, amount: int) -> None:
    """Take AMOUNT out of an account (fails if the balance is short)."""
    from .commands.account_cmd import run_account_withdraw

    _run(run_account_withdraw, ctx.obj["config"], account_id, amount)


@account.command("balance")
@click.argument("account_id")
@click.pass_context
def account_balance(ctx: click.Context, account_id: str) -> None:
    """Print the balance of ACCOUNT_ID."""
    from .commands.account_cmd import run_account_balance

    _run(run_account_balance, ctx.obj["config"], account_id)


@account.command("list")
@click.pass_context
def account_list(ctx: click.Context) -> None:
    """List accounts and balances."""
    from .commands.account_cmd import run_account_list

    _run(run_account_list, ctx.obj["config"])


# =============================================================================
# file
# =============================================================================


@cli.group("file")
def file_group() -> None:
    """Register and access content hashes."""
    pass


@file_group.command("add")
@click.argument("content_hash", required=False)
@ACCOUNT_OPTION
@click.option(
    "--path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="Hash this local file instead of passing HASH",
)
@click.pass_context
def file_add(ctx: click.Context, content_hash: str | None, caller: str, path: Path | None) -> None:
    """Register a content hash owned by the calling account.

    Examples:

        contentreg file add 9f86d0...0f00a08 --as alice

        contentreg file add --path report.pdf --as alice
    """
    from .commands.file_cmd import run_file_add

    _run(run_file_add, ctx.obj["config"], caller, content_hash=content_hash, path=path)


@file_group.command("read")
@click.argument("content_hash")
@ACCOUNT_OPTION
@click.pass_context
def file_read(ctx: click.Context, content_hash: str, caller: str) -> None:
    """Read a record (charged)."""
    from .charging import Operation
    from .commands.file_cmd import run_file_access

    _run(run_file_access, ctx.obj["config"], caller, content_hash, Operation.READ)


@file_group.command("write")
@click.argument("content_hash")
@ACCOUNT_OPTION
@click.pass_context
def file_write(ctx: click.Context, content_hash: str, caller: str) -> None:
    """Record a modification of a record (charged)."""
    from .charging import Operation
    from .commands.file_cmd import run_file_access

    _run(run_file_access, ctx.obj["config"], caller, content_hash, Operation.WRITE)


@file_group.command("remove")
@click.argument("content_hash")
@ACCOUNT_OPTION
@click.pass_context
def file_remove(ctx: click.Context, content_hash: str, caller: str) -> None:
    """Delete a record and its permissions (owner only, not charged)."""
    from .commands.file_cmd import run_file_remove

    _run(run_file_remove, ctx.obj["config"], caller, content_hash)


@file_group.command("show")
@click.argument("content_hash")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
@click.pass_context
def file_show(ctx: click.Context, content_hash: str, output_json: bool) -> None:
    """Show a record's owner, access count, next charges and permissions."""
    from .commands.file_cmd import run_file_show

    _run(run_file_show, ctx.obj["config"], content_hash, output_json=output_json)


@file_group.command("list")
@click.option("--owner", default=None, help="Only files owned by this account")
@click.pass_context
def file_list(ctx: click.Context, owner: str | None) -> None:
    """List registered content hashes."""
    from .commands.file_cmd import run_file_list

    _run(run_file_list, ctx.obj["config"], owner=owner)


# =============================================================================
# perm
# =============================================================================


@cli.group()
def perm() -> None:
    """Grant, revoke and check per-account permissions."""
    pass


@perm.command("grant")
@click.argument("content_hash")
@click.argument("account_id")
@click.argument("kind", type=PERMISSION_CHOICE)
@ACCOUNT_OPTION
@click.pass_context
def perm_grant(ctx: click.Context, content_hash: str, account_id: str, kind: str, caller: str) -> None:
    """Give ACCOUNT_ID read or write on a record (owner only)."""
    from .commands.perm_cmd import run_perm_grant

    _run(run_perm_grant, ctx.obj["config"], caller, content_hash, account_id, kind)


@perm.command("revoke")
@click.argument("content_hash")
@click.argument("account_id")
@click.argument("kind", type=PERMISSION_CHOICE)
@ACCOUNT_OPTION
@click.pass_context
def perm_revoke(ctx: click.Context, content_hash: str, account_id: str, kind: str, caller: str) -> None:
    """Take read or write on a record away from ACCOUNT_ID (owner only)."""
    from .commands.perm_cmd import run_perm_revoke

    _run(run_perm_revoke, ctx.obj["config"], caller, content_hash, account_id, kind)


@perm.command("check")
@click.argument("content_hash")
@click.argument("account_id")
@click.argument("kind", type=PERMISSION_CHOICE)
@click.pass_context
def perm_check(ctx: click.Context, content_hash: str, account_id: str, kind: str) -> None:
    """Exit 0 if ACCOUNT_ID may read/write the record."""
    from .commands.perm_cmd import run_perm_check

    _run(run_perm_check, ctx.obj["config"], content_hash, account_id, kind)


# =============================================================================
# cost / stats
# =============================================================================


@cli.command()
@click.argument("op", type=click.Choice(["create", "read", "write"]))
@click.option("--count", type=int, default=0, show_default=True, help="Access count of the record")
def cost(op: str, count: int) -> None:
    """Quote the charge for OP on a record with the given access count."""
    from .commands.events_cmd import run_cost

    _run(run_cost, op, count=count)


@cli.command()
@click.pass_context
def stats(ctx: click.Context) -> None:
    """Show registry totals."""
    from .commands.events_cmd import run_stats

    _run(run_stats, ctx.obj["config"])


# =============================================================================
# events
# =============================================================================


@cli.group()
def events() -> None:
    """Inspect the append-only event journal."""
    pass


@events.command("list")
@click.option("--subject", default=None, help="Only events for this content hash or account")
@click.option("--type", "event_type", default=None, help="Only events of this type (e.g. file.read)")
@click.option("--last", "last_n", type=click.IntRange(min=1), default=None, help="Show only the last N events")
@click.option("--json", "output_json", is_flag=True, help="One JSON object per line")
@click.pass_context
def events_list(
    ctx: click.Context,
    subject: str | None,
    event_type: str | None,
    last_n: int | None,
    output_json: bool,
) -> None:
    """List journaled events, oldest first."""
    from .commands.events_cmd import run_events_list

    _run(
        run_events_list,
        ctx.obj["config"],
        subject=subject,
        event_type=event_type,
        last_n=last_n,
        output_json=output_json,
    )


@events.command("follow")
@click.option("--from-start", is_flag=True, help="Print existing events before following")
@click.pass_context
def events_follow(ctx: click.Context, from_start: bool) -> None:
    """Print events as they are appended. Runs until interrupted (Ctrl+C)."""
    from .commands.events_cmd import run_events_follow

    _run(run_events_follow, ctx.obj["config"], from_start=from_start)


def main() -> None:
    """Main entrypoint."""
    cli()


if __name__ == "__main__":
    main()
