from __future__ import annotations

from contentreg.permissions import Permission, PermissionEntry, PermissionTable


def test_grant_write_does_not_imply_read() -> None:
    table = PermissionTable()
    assert table.grant("bob", Permission.WRITE) is True
    assert table.has_permission("bob", Permission.WRITE) is True
    assert table.has_permission("bob", Permission.READ) is False

    assert table.revoke("bob", Permission.WRITE) is True
    assert table.has_permission("bob", Permission.WRITE) is False


def test_revoke_without_entry_returns_false_and_creates_nothing() -> None:
    table = PermissionTable()
    assert table.revoke("carol", Permission.READ) is False
    assert "carol" not in table
    assert len(table) == 0


def test_grant_twice_is_idempotent() -> None:
    table = PermissionTable()
    table.grant("bob", Permission.READ)
    table.grant("bob", Permission.READ)
    assert len(table) == 1
    assert table.entry("bob") == PermissionEntry(can_read=True, can_write=False)


def test_cleared_entry_is_kept() -> None:
    table = PermissionTable()
    table.grant("bob", "read")
    table.revoke("bob", "read")
    assert "bob" in table
    assert table.entries()["bob"].to_dict() == {"read": False, "write": False}


def test_entries_sorted_by_account() -> None:
    table = PermissionTable()
    table.grant("zed", Permission.READ)
    table.grant("amy", Permission.WRITE)
    assert list(table.entries()) == ["amy", "zed"]
