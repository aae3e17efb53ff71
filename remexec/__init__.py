"""
remexec - run commands on remote hosts over SSH.

Commands run either directly on a non-interactive channel or, when
elevation credentials are configured, through an interactive ``su``
session driven over a pseudo-terminal.
"""

import logging

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())

from .config import ElevationCredentials, ExecutionOptions  # noqa: E402
from .remote import CommandError, HostKeyMismatch, RemoteError  # noqa: E402
from .shell import RemoteShell  # noqa: E402

__all__ = [
    "CommandError",
    "ElevationCredentials",
    "ExecutionOptions",
    "HostKeyMismatch",
    "RemoteError",
    "RemoteShell",
]
