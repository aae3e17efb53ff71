"""Configuration types and loading."""

from .loader import (
    ConfigError,
    find_config_file,
    inventory_candidates,
    load_config,
    load_host,
    lookup_host,
)
from .protocol import (
    LOCAL_OPTION_KEYS,
    Config,
    ElevationCredentials,
    ExecutionOptions,
    HostConfig,
    Slug,
    Verbosity,
)

__all__ = [
    "LOCAL_OPTION_KEYS",
    "Config",
    "ConfigError",
    "ElevationCredentials",
    "ExecutionOptions",
    "HostConfig",
    "Slug",
    "Verbosity",
    "find_config_file",
    "inventory_candidates",
    "load_config",
    "load_host",
    "lookup_host",
]
