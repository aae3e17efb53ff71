"""Ephemeral script staging.

A command body is written to a uniquely named ``.sh`` file and replaced
by a one-line invocation that makes the file executable, runs it and
deletes it::

    chmod 700 /var/tmp/remexec-x1y2.sh; /var/tmp/remexec-x1y2.sh; rm -f /var/tmp/remexec-x1y2.sh

The file is also removed when the staging scope exits, whether or not the
invocation ever ran.
"""

from __future__ import annotations

import os
import posixpath
import secrets
import tempfile
from contextlib import contextmanager, suppress
from typing import Iterator, Protocol

import paramiko  # type: ignore[import-untyped]

STAGING_DIR = "/var/tmp"
STAGING_PREFIX = "remexec-"
STAGING_SUFFIX = ".sh"


class StagingArea(Protocol):
    def write(self, content: str) -> str: ...

    def remove(self, path: str) -> None: ...


class LocalStagingArea:
    """Stages scripts on the local filesystem."""

    def __init__(self, directory: str = STAGING_DIR) -> None:
        self.directory = directory

    def write(self, content: str) -> str:
        fd, path = tempfile.mkstemp(
            prefix=STAGING_PREFIX,
            suffix=STAGING_SUFFIX,
            dir=self.directory,
        )
        with os.fdopen(fd, "w") as f:
            f.write(content)
        return path

    def remove(self, path: str) -> None:
        with suppress(FileNotFoundError):
            os.unlink(path)


class SftpStagingArea:
    """Stages scripts on the remote host through an SFTP client."""

    def __init__(
        self,
        sftp: paramiko.SFTPClient,
        directory: str = STAGING_DIR,
    ) -> None:
        self._sftp = sftp
        self.directory = directory

    def write(self, content: str) -> str:
        name = f"{STAGING_PREFIX}{secrets.token_hex(8)}{STAGING_SUFFIX}"
        path = posixpath.join(self.directory, name)
        with self._sftp.open(path, "wx") as f:
            f.write(content)
        return path

    def remove(self, path: str) -> None:
        # The invocation deletes the file itself when it gets to run.
        with suppress(FileNotFoundError):
            self._sftp.remove(path)


def remote_invocation(path: str) -> str:
    return f"chmod 700 {path}; {path}; rm -f {path}"


@contextmanager
def temp_cmd_file(
    cmd: str, area: StagingArea | None = None
) -> Iterator[str]:
    """Stage *cmd* as a script and yield the line that runs it."""
    staging = area if area is not None else LocalStagingArea()
    path = staging.write(cmd)
    try:
        yield remote_invocation(path)
    finally:
        staging.remove(path)
