"""Errors raised by remote sessions, commands and transfers."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import paramiko  # type: ignore[import-untyped]

if TYPE_CHECKING:
    from .execution import CommandFailure


class RemoteError(Exception):
    """Base exception for remote operations."""


class HostKeyMismatch(RemoteError):
    """The server offered a host key that is unknown or has changed."""

    def __init__(
        self,
        hostname: str,
        key: paramiko.PKey,
        known_hosts_file: str,
    ) -> None:
        self.hostname = hostname
        self.key = key
        self.known_hosts_file = known_hosts_file
        super().__init__(
            f"Host key for {hostname} ({key.get_name()}) is unknown"
            f" or does not match {known_hosts_file}"
        )

    def remember_host(self) -> None:
        """Record the offered key in the known hosts file."""
        path = Path(self.known_hosts_file).expanduser()
        host_keys = paramiko.HostKeys()
        if path.is_file():
            host_keys.load(str(path))
        host_keys.add(self.hostname, self.key.get_name(), self.key)
        path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
        host_keys.save(str(path))


class CommandError(RemoteError):
    """A remote command could not start or did not succeed."""

    def __init__(self, failure: CommandFailure) -> None:
        self.failure = failure
        super().__init__(failure.message)

    @property
    def command(self) -> str:
        return self.failure.command

    @property
    def reason(self) -> str:
        return self.failure.reason.value

    @property
    def status(self) -> int:
        return self.failure.status

    @property
    def signal(self) -> str | None:
        return self.failure.signal

    @property
    def stdout(self) -> str:
        return self.failure.stdout

    @property
    def stderr(self) -> str:
        return self.failure.stderr


class TransferError(RemoteError):
    """A file could not be copied to or from the remote host."""
