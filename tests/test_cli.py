"""
End-to-end tests for the contentreg CLI.

Every invocation is a separate process-level run: state carries over only
through the journal under --home.
"""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from click.testing import CliRunner

from contentreg.cli import cli
from contentreg.identifiers import compute_content_hash

from conftest import content_hash


@pytest.fixture
def home(tmp_path: Path) -> Path:
    return tmp_path / "reg"


@pytest.fixture
def invoke(home: Path):
    runner = CliRunner()

    def _invoke(*args: str):
        return runner.invoke(cli, ["--home", str(home), *args])

    return _invoke


def test_version() -> None:
    result = CliRunner().invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "contentreg" in result.output


def test_account_lifecycle(invoke) -> None:
    assert invoke("account", "register", "alice", "--balance", "100").exit_code == 0
    assert invoke("account", "register", "alice").exit_code == 1
    assert invoke("account", "deposit", "alice", "50").exit_code == 0
    assert invoke("account", "withdraw", "alice", "500").exit_code == 1
    assert invoke("account", "withdraw", "alice", "20").exit_code == 0

    result = invoke("account", "balance", "alice")
    assert result.exit_code == 0
    assert result.output.strip() == "130"

    assert invoke("account", "balance", "nobody").exit_code == 1
    assert invoke("account", "deposit", "nobody", "5").exit_code == 1

    listing = invoke("account", "list")
    assert listing.exit_code == 0
    assert "alice" in listing.output


def test_round_trip_through_cli(invoke) -> None:
    h = content_hash("cli")
    invoke("account", "register", "A", "--balance", "1000")
    assert invoke("file", "add", h, "--as", "A").exit_code == 0
    for _ in range(3):
        assert invoke("file", "write", h, "--as", "A").exit_code == 0
    assert invoke("file", "read", h, "--as", "A").exit_code == 0

    assert invoke("account", "balance", "A").output.strip() == "980"

    shown = invoke("file", "show", h, "--json")
    assert shown.exit_code == 0
    info = json.loads(shown.output)
    assert info["access_count"] == 4
    assert info["owner"] == "A"


def test_file_add_from_path(invoke, tmp_path: Path) -> None:
    doc = tmp_path / "doc.txt"
    doc.write_bytes(b"some bytes")
    invoke("account", "register", "alice", "--balance", "10")

    assert invoke("file", "add", "--path", str(doc), "--as", "alice").exit_code == 0
    h = compute_content_hash(b"some bytes")
    assert invoke("file", "show", h).exit_code == 0
    assert invoke("file", "add", "--as", "alice").exit_code == 2


def test_failures_exit_nonzero(invoke) -> None:
    h = content_hash("missing")
    invoke("account", "register", "poor", "--balance", "2")
    assert invoke("file", "add", h, "--as", "poor").exit_code == 1
    assert invoke("file", "read", h, "--as", "poor").exit_code == 1
    assert invoke("file", "show", h).exit_code == 1
    assert invoke("file", "read", "nothex", "--as", "poor").exit_code == 1


def test_permissions_via_cli(invoke) -> None:
    h = content_hash("shared")
    invoke("account", "register", "owner", "--balance", "100")
    invoke("account", "register", "bob", "--balance", "100")
    invoke("file", "add", h, "--as", "owner")

    assert invoke("file", "read", h, "--as", "bob").exit_code == 1
    assert invoke("perm", "check", h, "bob", "read").exit_code == 1
    assert invoke("perm", "grant", h, "bob", "read", "--as", "bob").exit_code == 1
    assert invoke("perm", "grant", h, "bob", "read", "--as", "owner").exit_code == 0
    assert invoke("perm", "check", h, "bob", "read").output.strip() == "yes"
    assert invoke("file", "read", h, "--as", "bob").exit_code == 0

    assert invoke("perm", "revoke", h, "bob", "read", "--as", "owner").exit_code == 0
    assert invoke("perm", "check", h, "bob", "read").exit_code == 1
    assert invoke("perm", "revoke", h, "carol", "read", "--as", "owner").exit_code == 1

    assert invoke("file", "remove", h, "--as", "bob").exit_code == 1
    assert invoke("file", "remove", h, "--as", "owner").exit_code == 0
    assert invoke("file", "show", h).exit_code == 1


def test_cost_quote(invoke) -> None:
    assert invoke("cost", "write", "--count", "2").output.strip() == "5"
    assert invoke("cost", "read", "--count", "5").output.strip() == "7"
    assert invoke("cost", "create").output.strip() == "3"
    assert invoke("cost", "read", "--count", "-1").exit_code == 2


def test_events_list_and_stats(invoke) -> None:
    h = content_hash("ev")
    invoke("account", "register", "alice", "--balance", "50")
    invoke("file", "add", h, "--as", "alice")
    invoke("file", "read", h, "--as", "alice")

    result = invoke("events", "list", "--json")
    assert result.exit_code == 0
    types = [json.loads(line)["event_type"] for line in result.output.splitlines()]
    assert types == ["registry.configured", "account.registered", "file.created", "file.read"]

    last = invoke("events", "list", "--json", "--last", "1")
    assert json.loads(last.output)["payload"] == {"cost": 2, "access_count": 1}

    by_type = invoke("events", "list", "--json", "--type", "file.created")
    assert json.loads(by_type.output)["subject"] == h

    assert invoke("events", "list", "--type", "bogus").exit_code == 2
    assert invoke("events", "list", "--subject", content_hash("none")).exit_code == 1

    stats = invoke("stats")
    assert stats.exit_code == 0
    assert "Users" in stats.output


def test_config_file_disables_enforcement(invoke, home: Path) -> None:
    home.mkdir(parents=True)
    (home / "contentreg.toml").write_text("[registry]\nenforce_permissions = false\n", encoding="utf-8")
    h = content_hash("open")
    invoke("account", "register", "owner", "--balance", "10")
    invoke("account", "register", "bob", "--balance", "10")
    invoke("file", "add", h, "--as", "owner")
    assert invoke("file", "read", h, "--as", "bob").exit_code == 0


def test_config_cannot_change_after_events(invoke, home: Path) -> None:
    assert invoke("account", "register", "alice", "--balance", "10").exit_code == 0
    (home / "contentreg.toml").write_text("[registry]\nenforce_permissions = false\n", encoding="utf-8")

    result = invoke("account", "balance", "alice")
    assert result.exit_code == 1
    assert "enforce_permissions" in result.output

    (home / "contentreg.toml").unlink()
    assert invoke("account", "balance", "alice").output.strip() == "10"


def test_bad_config_is_reported(invoke, home: Path) -> None:
    home.mkdir(parents=True)
    (home / "contentreg.toml").write_text("[registry\n", encoding="utf-8")
    result = invoke("stats")
    assert result.exit_code == 1
    assert "Failed to parse" in result.output
