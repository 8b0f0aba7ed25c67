"""Implementations behind the `contentreg` CLI commands."""
