"""Account CLI commands."""

from __future__ import annotations

from rich.console import Console
from rich.table import Table

from ..config import RegistryConfig
from ..replay import open_registry
from ..service import CallResult


def report_failure(op: str, result: CallResult) -> int:
    err = Console(stderr=True)
    message = f"{op} failed: {result.error.value}"
    if result.cost:
        message += f" (charge {result.cost})"
    err.print(message, style="bold red")
    return 1


def run_account_register(config: RegistryConfig, account: str, *, balance: int = 0) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.register(account, balance)
    if not result:
        return report_failure("register", result)
    console.print(f"[green]registered[/green] {account} with balance {balance}")
    return 0


def run_account_deposit(config: RegistryConfig, account: str, amount: int) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.deposit(account, amount)
    if not result:
        return report_failure("deposit", result)
    console.print(f"[green]deposited[/green] {amount} to {account}; balance {registry.balance_of(account)}")
    return 0


def run_account_withdraw(config: RegistryConfig, account: str, amount: int) -> int:
    console = Console()
    registry = open_registry(config)
    result = registry.withdraw(account, amount)
    if not result:
        return report_failure("withdraw", result)
    console.print(f"[green]withdrew[/green] {result.amount} from {account}; balance {registry.balance_of(account)}")
    return 0


def run_account_balance(config: RegistryConfig, account: str) -> int:
    err = Console(stderr=True)
    registry = open_registry(config)
    if not registry.is_user_registered(account):
        err.print(f"Account not found: {account}", style="bold red")
        return 1
    print(registry.balance_of(account))
    return 0


def run_account_list(config: RegistryConfig) -> int:
    console = Console()
    registry = open_registry(config)

    table = Table(title="Accounts")
    table.add_column("account", style="cyan", no_wrap=True)
    table.add_column("balance", justify="right")
    table.add_column("files owned", justify="right")

    for account, balance in registry.balances().items():
        owned = len(registry.contents.owned_by(account))
        name = f"[dim]{account} (system)[/dim]" if account == registry.system_account else account
        table.add_row(name, str(balance), str(owned))

    console.print(table)
    return 0
