"""Shared test fixtures and transport fakes."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable, Iterable, Iterator, Mapping, Union

import pytest

from remexec.config import Config, ExecutionOptions, HostConfig
from remexec.remote import ChannelEvent

SAMPLE_YAML = """\
hosts:
  web1:
    host: web1.example.com
    user: deploy
    password: s3cret
    options:
      remember-host: true
      port: 2222

  db1:
    host: db1.example.com
    user: admin
    known-hosts-file: /tmp/known_hosts
    options:
      su-user: root
      su-password: rootpw
"""


EventScript = Union[
    Iterable[ChannelEvent],
    Callable[["FakeChannel"], Iterator[ChannelEvent]],
]


class FakeChannel:
    """A scripted channel.

    *events* is either a fixed list or a generator function receiving the
    channel, so a script can react to what was sent to it.
    """

    def __init__(
        self,
        events: EventScript = (),
        *,
        exec_ok: bool = True,
        pty_ok: bool = True,
    ) -> None:
        self._events = events
        self.exec_ok = exec_ok
        self.pty_ok = pty_ok
        self.executed: list[str] = []
        self.sent: list[str] = []
        self.pty_width: int | None = None
        self.eof_sent = False
        self.closed = False
        self.consumed = 0

    def exec(self, command: str) -> bool:
        self.executed.append(command)
        return self.exec_ok

    def request_pty(self, width: int = 256) -> bool:
        self.pty_width = width
        return self.pty_ok

    def send_data(self, data: str) -> None:
        self.sent.append(data)

    def eof(self) -> None:
        self.eof_sent = True

    def events(self) -> Iterator[ChannelEvent]:
        source = (
            self._events(self) if callable(self._events) else self._events
        )
        for event in source:
            self.consumed += 1
            yield event

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeChannel:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class _FakeSftpFile(io.BytesIO):
    def __init__(self, sftp: FakeSftp, path: str) -> None:
        super().__init__()
        self._sftp = sftp
        self._path = path

    def write(self, data: Any) -> int:  # type: ignore[override]
        if isinstance(data, str):
            data = data.encode()
        return super().write(data)

    def close(self) -> None:
        if not self.closed:
            self._sftp.files[self._path] = self.getvalue()
        super().close()


class FakeSftp:
    """In-memory SFTP client."""

    def __init__(self, files: dict[str, bytes] | None = None) -> None:
        self.files: dict[str, bytes] = dict(files or {})
        self.removed: list[str] = []
        self.closed = False

    def open(self, path: str, mode: str = "r") -> _FakeSftpFile:
        if "x" in mode and path in self.files:
            raise FileExistsError(path)
        return _FakeSftpFile(self, path)

    def get(self, remotepath: str, localpath: str) -> None:
        if remotepath not in self.files:
            raise FileNotFoundError(remotepath)
        Path(localpath).write_bytes(self.files[remotepath])

    def getfo(self, remotepath: str, fl: Any) -> int:
        if remotepath not in self.files:
            raise FileNotFoundError(remotepath)
        fl.write(self.files[remotepath])
        return len(self.files[remotepath])

    def remove(self, path: str) -> None:
        if path not in self.files:
            raise FileNotFoundError(path)
        del self.files[path]
        self.removed.append(path)

    def close(self) -> None:
        self.closed = True

    def __enter__(self) -> FakeSftp:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()


class FakeSession:
    """Hands out pre-built channels in order."""

    def __init__(
        self,
        channels: list[FakeChannel] | None = None,
        sftp: FakeSftp | None = None,
    ) -> None:
        self.channels = list(channels or [])
        self.opened: list[FakeChannel] = []
        self.sftp = sftp or FakeSftp()
        self.closed = False

    def open_channel(self) -> FakeChannel:
        channel = self.channels.pop(0)
        self.opened.append(channel)
        return channel

    def open_sftp(self) -> FakeSftp:
        return self.sftp

    def close(self) -> None:
        self.closed = True


class FakeProvider:
    """Session provider returning *session*, or raising queued errors."""

    def __init__(
        self,
        session: FakeSession | None = None,
        errors: list[Exception] | None = None,
    ) -> None:
        self.session = session or FakeSession()
        self.errors = list(errors or [])
        self.calls: list[tuple[str, str, dict[str, Any]]] = []

    def connect(
        self, host: str, user: str, options: Mapping[str, Any]
    ) -> FakeSession:
        self.calls.append((host, user, dict(options)))
        if self.errors:
            raise self.errors.pop(0)
        return self.session


@pytest.fixture()
def sample_config_file(tmp_path: Path) -> Path:
    """Write sample YAML config to a temp file."""
    p = tmp_path / "hosts.yaml"
    p.write_text(SAMPLE_YAML)
    return p


@pytest.fixture()
def host_config() -> HostConfig:
    return HostConfig(
        slug="web1",
        host="web1.example.com",
        user="deploy",
        password="s3cret",
    )


@pytest.fixture()
def elevated_host_config() -> HostConfig:
    return HostConfig(
        slug="db1",
        host="db1.example.com",
        user="admin",
        options=ExecutionOptions(su_user="root", su_password="rootpw"),
    )


@pytest.fixture()
def sample_config(
    host_config: HostConfig, elevated_host_config: HostConfig
) -> Config:
    return Config(hosts={"web1": host_config, "db1": elevated_host_config})
