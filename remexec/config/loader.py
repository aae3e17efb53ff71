"""Host inventory discovery and lookup.

The inventory is a YAML document with a single ``hosts:`` mapping keyed by
host slug. It is looked for, in order, at an explicit path, at
``$XDG_CONFIG_HOME/remexec/hosts.yaml`` and at ``/etc/remexec/hosts.yaml``.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .protocol import Config, HostConfig

INVENTORY_NAME = "hosts.yaml"
SYSTEM_INVENTORY = Path("/etc/remexec") / INVENTORY_NAME


class ConfigError(Exception):
    """The host inventory is missing, malformed or lacks a host.

    *path* is the inventory file the error was found in, when known.
    """

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path


def inventory_candidates() -> list[Path]:
    """Default inventory locations, most specific first."""
    xdg = os.environ.get("XDG_CONFIG_HOME") or os.path.expanduser(
        "~/.config"
    )
    return [Path(xdg) / "remexec" / INVENTORY_NAME, SYSTEM_INVENTORY]


def find_config_file(config_path: str | None = None) -> Path:
    """The inventory file to load.

    An explicit *config_path* must exist; otherwise the first existing
    default location wins.
    """
    if config_path is not None:
        explicit = Path(config_path)
        if not explicit.is_file():
            raise ConfigError(
                f"Config file not found: {config_path}", explicit
            )
        return explicit
    candidates = inventory_candidates()
    found = next((p for p in candidates if p.is_file()), None)
    if found is None:
        searched = ", ".join(str(p) for p in candidates)
        raise ConfigError(f"No config file found. Searched: {searched}")
    return found


def _read_inventory(path: Path) -> dict[str, Any]:
    try:
        raw = yaml.safe_load(path.read_text())
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}", path) from e
    # An empty file is an empty inventory.
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("Config file must be a YAML mapping", path)
    return raw


def _validate(path: Path) -> Config:
    try:
        return Config.model_validate(_read_inventory(path))
    except ValidationError as e:
        raise ConfigError(f"Invalid host inventory in {path}", path) from e


def load_config(config_path: str | None = None) -> Config:
    """Load and validate the host inventory."""
    return _validate(find_config_file(config_path))


def lookup_host(
    config: Config, slug: str, path: Path | None = None
) -> HostConfig:
    """The inventory entry for *slug*; ConfigError when there is none."""
    host = config.hosts.get(slug)
    if host is None:
        known = ", ".join(sorted(config.hosts)) or "none"
        raise ConfigError(
            f"Unknown host '{slug}' (known hosts: {known})", path
        )
    return host


def load_host(config_path: str | None, slug: str) -> HostConfig:
    """Load the inventory and return the entry for *slug*."""
    path = find_config_file(config_path)
    return lookup_host(_validate(path), slug, path)
