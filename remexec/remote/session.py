"""Authenticated session acquisition."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Mapping, Protocol

import paramiko  # type: ignore[import-untyped]

from .channel import Channel, ParamikoChannel
from .errors import HostKeyMismatch


_VERBOSITY_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
    "fatal": logging.CRITICAL,
}


def known_hosts_name(host: str, port: int | None = None) -> str:
    """The name *host* is recorded under in a known hosts file."""
    if port is None or port == 22:
        return host
    return f"[{host}]:{port}"


class Session(Protocol):
    """One authenticated connection to a remote host."""

    def open_channel(self) -> Channel: ...

    def open_sftp(self) -> paramiko.SFTPClient: ...

    def close(self) -> None: ...


class SessionProvider(Protocol):
    """Opens sessions; raises HostKeyMismatch for untrusted host keys."""

    def connect(
        self, host: str, user: str, options: Mapping[str, Any]
    ) -> Session: ...


class ParamikoSession:
    """Session backed by a connected ``paramiko.SSHClient``."""

    def __init__(self, client: paramiko.SSHClient) -> None:
        self._client = client

    def open_channel(self) -> ParamikoChannel:
        transport = self._client.get_transport()
        return ParamikoChannel(transport.open_session())

    def open_sftp(self) -> paramiko.SFTPClient:
        return self._client.open_sftp()

    def close(self) -> None:
        self._client.close()


class _RejectUnknownHostKey(paramiko.MissingHostKeyPolicy):
    """Refuse unknown hosts, keeping the key so it can be remembered."""

    def __init__(self, known_hosts_file: str) -> None:
        self._known_hosts_file = known_hosts_file

    def missing_host_key(
        self,
        client: paramiko.SSHClient,
        hostname: str,
        key: paramiko.PKey,
    ) -> None:
        raise HostKeyMismatch(hostname, key, self._known_hosts_file)


class ParamikoSessionProvider:
    """Connects with paramiko, trusting only *known_hosts_file*."""

    def __init__(self, known_hosts_file: str = "~/.ssh/known_hosts") -> None:
        self.known_hosts_file = known_hosts_file

    def connect(
        self, host: str, user: str, options: Mapping[str, Any]
    ) -> ParamikoSession:
        connect_kwargs = dict(options)
        verbose = connect_kwargs.pop("verbose", "warn")
        use_agent = connect_kwargs.pop("use_agent", False)
        # paramiko never prompts, so there is nothing to disable
        connect_kwargs.pop("non_interactive", None)

        logging.getLogger("paramiko").setLevel(
            _VERBOSITY_LEVELS.get(verbose, logging.WARNING)
        )

        client = paramiko.SSHClient()
        known_hosts = Path(self.known_hosts_file).expanduser()
        if known_hosts.is_file():
            client.load_host_keys(str(known_hosts))
        client.set_missing_host_key_policy(
            _RejectUnknownHostKey(self.known_hosts_file)
        )

        try:
            client.connect(
                hostname=host,
                username=user,
                allow_agent=use_agent,
                **connect_kwargs,
            )
        except paramiko.BadHostKeyException as e:
            client.close()
            raise HostKeyMismatch(
                known_hosts_name(host, connect_kwargs.get("port")),
                e.key,
                self.known_hosts_file,
            ) from e
        except Exception:
            client.close()
            raise
        return ParamikoSession(client)


class SessionGateway:
    """Scoped session acquisition for one (host, user, options) tuple.

    An unknown or changed host key is fatal unless *remember_host* is
    set, in which case the key is recorded once and the connection is
    retried exactly once.
    """

    def __init__(
        self,
        host: str,
        user: str,
        options: Mapping[str, Any],
        *,
        remember_host: bool = False,
        provider: SessionProvider | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.host = host
        self.user = user
        self.options = dict(options)
        self.remember_host = remember_host
        self._provider = provider or ParamikoSessionProvider()
        self._logger = logger or logging.getLogger(__name__)

    @contextmanager
    def session(self) -> Iterator[Session]:
        """Yield a connected session and close it on exit."""
        session = self._connect()
        try:
            yield session
        finally:
            session.close()

    def _connect(self) -> Session:
        first_try = True
        while True:
            try:
                return self._provider.connect(
                    self.host, self.user, self.options
                )
            except HostKeyMismatch as err:
                if self.remember_host and first_try:
                    first_try = False
                    self._logger.info(
                        "Recording host key for %s in %s and retrying",
                        err.hostname,
                        err.known_hosts_file,
                    )
                    err.remember_host()
                else:
                    raise
