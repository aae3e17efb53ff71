"""Channel events and the paramiko channel adapter.

A channel is one command stream on a session. Whatever the transport,
the executors only see an ordered sequence of events, always ending
with ``Close``:

    Data | ExtendedData | ExitStatus | ExitSignal | Eof  ...  Close
"""

from __future__ import annotations

import codecs
import select
from dataclasses import dataclass
from typing import Iterator, Protocol, Union

import paramiko  # type: ignore[import-untyped]


@dataclass(frozen=True)
class Data:
    """A chunk of standard output."""

    data: str


@dataclass(frozen=True)
class ExtendedData:
    """A chunk of the error stream."""

    data: str
    type: int = 1


@dataclass(frozen=True)
class ExitStatus:
    status: int


@dataclass(frozen=True)
class ExitSignal:
    signal: str


@dataclass(frozen=True)
class Eof:
    pass


@dataclass(frozen=True)
class Close:
    pass


ChannelEvent = Union[Data, ExtendedData, ExitStatus, ExitSignal, Eof, Close]


class Channel(Protocol):
    """What the executors need from a command channel."""

    def exec(self, command: str) -> bool: ...

    def request_pty(self, width: int = 256) -> bool: ...

    def send_data(self, data: str) -> None: ...

    def eof(self) -> None: ...

    def events(self) -> Iterator[ChannelEvent]: ...

    def close(self) -> None: ...

    def __enter__(self) -> Channel: ...

    def __exit__(self, *exc: object) -> None: ...


class ParamikoChannel:
    """Event view of a ``paramiko.Channel``.

    paramiko buffers incoming data and exposes readiness flags instead of
    callbacks, so ``events()`` checks the channel, turns what it finds
    into events, and otherwise waits on the channel with ``select`` for at
    most *poll_interval* seconds. Buffered output is always delivered
    before ``Close``.
    """

    def __init__(
        self,
        channel: paramiko.Channel,
        *,
        poll_interval: float = 1.0,
        bufsize: int = 32768,
    ) -> None:
        self._channel = channel
        self._poll_interval = poll_interval
        self._bufsize = bufsize

    def exec(self, command: str) -> bool:
        """Start *command*; False when the server refuses it."""
        try:
            self._channel.exec_command(command)
        except paramiko.SSHException:
            return False
        return True

    def request_pty(self, width: int = 256) -> bool:
        """Ask for a pseudo-terminal; False when the server refuses it."""
        try:
            self._channel.get_pty(width=width)
        except paramiko.SSHException:
            return False
        return True

    def send_data(self, data: str) -> None:
        self._channel.sendall(data.encode())

    def eof(self) -> None:
        self._channel.shutdown_write()

    def events(self) -> Iterator[ChannelEvent]:
        chan = self._channel
        stdout = codecs.getincrementaldecoder("utf-8")(errors="replace")
        stderr = codecs.getincrementaldecoder("utf-8")(errors="replace")
        status_seen = False
        eof_seen = False

        while True:
            progressed = False

            if chan.recv_ready():
                chunk = chan.recv(self._bufsize)
                if chunk:
                    progressed = True
                    text = stdout.decode(chunk)
                    if text:
                        yield Data(text)

            if chan.recv_stderr_ready():
                chunk = chan.recv_stderr(self._bufsize)
                if chunk:
                    progressed = True
                    text = stderr.decode(chunk)
                    if text:
                        yield ExtendedData(text)

            if not status_seen and chan.exit_status != -1:
                status_seen = True
                progressed = True
                yield ExitStatus(chan.exit_status)

            if not eof_seen and chan.eof_received:
                eof_seen = True
                progressed = True
                yield Eof()

            if (
                chan.closed
                and not chan.recv_ready()
                and not chan.recv_stderr_ready()
            ):
                tail = stdout.decode(b"", final=True)
                if tail:
                    yield Data(tail)
                tail = stderr.decode(b"", final=True)
                if tail:
                    yield ExtendedData(tail)
                if not status_seen and chan.exit_status != -1:
                    yield ExitStatus(chan.exit_status)
                elif not status_seen:
                    # paramiko ignores the exit-signal request; a close
                    # with no exit status is the only trace of it.
                    yield ExitSignal("UNKNOWN")
                yield Close()
                return

            if not progressed:
                # Readable once data arrives or the channel closes.
                select.select([chan], [], [], self._poll_interval)

    def close(self) -> None:
        self._channel.close()

    def __enter__(self) -> ParamikoChannel:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
