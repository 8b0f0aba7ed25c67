"""
Registry configuration.

Settings live in <home>/contentreg.toml:

    [registry]
    system_account = "system"
    enforce_permissions = true
    journal = "events.jsonl"

The home directory is taken from --home, then $CONTENTREG_HOME, then
./.contentreg. A missing config file means all defaults.
"""

from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import ConfigError
from .identifiers import SYSTEM_ACCOUNT, normalize_account

CONFIG_FILENAME = "contentreg.toml"
LOCK_FILENAME = ".lock"
DEFAULT_HOME = Path(".contentreg")
HOME_ENV_VAR = "CONTENTREG_HOME"


@dataclass(frozen=True)
class RegistryConfig:
    home: Path
    system_account: str = SYSTEM_ACCOUNT
    enforce_permissions: bool = True
    journal_name: str = "events.jsonl"

    @property
    def journal_path(self) -> Path:
        return self.home / self.journal_name

    @property
    def config_path(self) -> Path:
        return self.home / CONFIG_FILENAME

    @property
    def lock_path(self) -> Path:
        return self.home / LOCK_FILENAME


def resolve_home(home: Path | None = None) -> Path:
    if home is not None:
        return home
    env = os.environ.get(HOME_ENV_VAR, "").strip()
    return Path(env) if env else DEFAULT_HOME


def _expect(section: dict[str, Any], key: str, kind: type, default: Any) -> Any:
    value = section.get(key, default)
    if not isinstance(value, kind):
        raise ConfigError(f"[registry].{key} must be {kind.__name__}, got {type(value).__name__}")
    return value


def load_config(path: Path | None = None, *, home: Path | None = None) -> RegistryConfig:
    """
    Load configuration.

    Args:
        path: Explicit config file (must exist)
        home: Registry home directory (see resolve_home)

    Returns:
        RegistryConfig with defaults for anything not set

    Raises:
        ConfigError: If the file is missing (explicit path), unparseable,
            or has values of the wrong type
    """
    home = resolve_home(home)
    if path is None:
        path = home / CONFIG_FILENAME
        if not path.exists():
            return RegistryConfig(home=home)
    elif not path.exists():
        raise ConfigError(f"Config file not found: {path}")

    with open(path, "rb") as f:
        try:
            data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Failed to parse {path}: {e}") from e

    section = data.get("registry", {})
    if not isinstance(section, dict):
        raise ConfigError("[registry] must be a table")

    system_account = _expect(section, "system_account", str, SYSTEM_ACCOUNT)
    try:
        normalize_account(system_account)
    except ValueError as e:
        raise ConfigError(f"[registry].system_account: {e}") from e

    journal_name = _expect(section, "journal", str, "events.jsonl").strip()
    if not journal_name:
        raise ConfigError("[registry].journal must not be empty")

    return RegistryConfig(
        home=home,
        system_account=system_account,
        enforce_permissions=_expect(section, "enforce_permissions", bool, True),
        journal_name=journal_name,
    )
