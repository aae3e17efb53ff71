"""Non-interactive command execution over a session channel."""

from __future__ import annotations

import enum
import logging
from typing import Iterator, Optional, Union

from pydantic import BaseModel, ConfigDict

from .channel import (
    Channel,
    ChannelEvent,
    Close,
    Data,
    Eof,
    ExitSignal,
    ExitStatus,
    ExtendedData,
)
from .errors import CommandError
from .session import Session


class FailureReason(str, enum.Enum):
    NOT_STARTED = "not-started"
    NO_PTY = "no-pty"
    SIGNAL = "signal"
    STATUS = "status"
    STDERR = "stderr"


class CommandResult(BaseModel):
    """Everything received for one command, accumulated event by event."""

    stdout: str = ""
    stderr: str = ""
    status: int = 0
    signal: Optional[str] = None
    done: bool = False


class CommandOutput(BaseModel):
    """A command that completed successfully."""

    model_config = ConfigDict(frozen=True)
    stdout: str
    status: int = 0
    signal: Optional[str] = None


class CommandFailure(BaseModel):
    """A command that could not start or did not succeed."""

    model_config = ConfigDict(frozen=True)
    command: str
    reason: FailureReason
    message: str
    stdout: str = ""
    stderr: str = ""
    status: int = 0
    signal: Optional[str] = None


Outcome = Union[CommandOutput, CommandFailure]


def unwrap(outcome: Outcome) -> str:
    """Return the output of a success, raise CommandError for a failure."""
    match outcome:
        case CommandOutput():
            return outcome.stdout
        case CommandFailure():
            raise CommandError(outcome)


def iter_lines(data: str) -> Iterator[str]:
    """Yield the lines of *data* with their line terminator removed."""
    lines = data.split("\n")
    if lines[-1] == "":
        lines.pop()
    for line in lines:
        yield line.removesuffix("\r")


class ChannelHandler:
    """Folds the events of one channel into a CommandResult.

    ``handle`` returns None while the command is still running and an
    Outcome once it is over: when a sentinel line is seen or the channel
    closes.
    """

    operation = "exec"

    def __init__(
        self,
        command: str,
        *,
        done_string: str | None = None,
        component: str = "CommandExecutor",
        logger: logging.Logger | None = None,
    ) -> None:
        self.command = command
        self.done_string = done_string
        self.header = f"{component}#{self.operation}"
        self.result = CommandResult()
        self.logger = logger or logging.getLogger(__name__)

    def handle(self, event: ChannelEvent) -> Outcome | None:
        match event:
            case Data(data=data):
                return self.on_data(data)
            case ExtendedData(data=data):
                self.logger.debug("%s - STDERR: %s", self.header, data)
                self.result.stderr += data
            case ExitStatus(status=status):
                self.result.status = status
                self.logger.debug("%s - STATUS: %s", self.header, status)
            case ExitSignal(signal=signal):
                self.result.signal = signal
                self.logger.debug("%s - SIGNAL: %s", self.header, signal)
            case Eof():
                self.logger.debug("%s - EOF RECEIVED", self.header)
            case Close():
                self.logger.debug(
                    "%s - Command: %s, exit status: %s",
                    self.header,
                    self.command,
                    self.result.status,
                )
                return self.on_close()
        return None

    def on_data(self, data: str) -> Outcome | None:
        self.logger.debug("%s - STDOUT: %s", self.header, data)
        self.result.stdout += data
        if self.sentinel_seen(data):
            return self.output()
        return None

    def on_close(self) -> Outcome:
        result = self.result
        if result.signal:
            return self.failure(
                FailureReason.SIGNAL,
                f"Command '{self.command}' exited with signal {result.signal}",
            )
        if result.status != 0:
            return self.failure(
                FailureReason.STATUS,
                f"Command '{self.command}' exited with status {result.status}",
            )
        if result.stderr:
            return self.failure(
                FailureReason.STDERR,
                f"Command '{self.command}' failed: {result.stderr}",
            )
        return self.output()

    def sentinel_seen(self, data: str) -> bool:
        """Whether a line of *data* is exactly the sentinel line."""
        if self.done_string is None:
            return False
        if any(line == self.done_string for line in iter_lines(data)):
            self.result.done = True
            return True
        return False

    def output(self, stdout: str | None = None) -> CommandOutput:
        return CommandOutput(
            stdout=self.result.stdout if stdout is None else stdout,
            status=self.result.status,
            signal=self.result.signal,
        )

    def failure(self, reason: FailureReason, detail: str) -> CommandFailure:
        return CommandFailure(
            command=self.command,
            reason=reason,
            message=f"{self.header} - {detail}",
            stdout=self.result.stdout,
            stderr=self.result.stderr,
            status=self.result.status,
            signal=self.result.signal,
        )


def drive_channel(channel: Channel, handler: ChannelHandler) -> Outcome:
    """Feed every event of *channel* to *handler* until it has an outcome."""
    for event in channel.events():
        outcome = handler.handle(event)
        if outcome is not None:
            return outcome
    # The event stream ended without a Close event.
    return handler.on_close()


class CommandExecutor:
    """Runs one command per call on a non-interactive channel."""

    def __init__(
        self,
        session: Session,
        *,
        component: str = "CommandExecutor",
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self._component = component
        self._logger = logger or logging.getLogger(__name__)

    def exec(
        self,
        command: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> str:
        """Run *command* and return its output.

        Collection stops early at the first output line equal to
        *done_string*. *stdin*, when given, is written to the command's
        input which is then closed.

        Raises CommandError if the command cannot start, is killed by a
        signal, exits non-zero, or writes anything to stderr.
        """
        return unwrap(self.run(command, done_string, stdin))

    def run(
        self,
        command: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> Outcome:
        handler = ChannelHandler(
            command,
            done_string=done_string,
            component=self._component,
            logger=self._logger,
        )
        with self._session.open_channel() as channel:
            if not channel.exec(command):
                return handler.failure(
                    FailureReason.NOT_STARTED,
                    f"Could not execute command {command}",
                )
            self._logger.debug(
                "%s - Command: %s started.", handler.header, command
            )
            if stdin:
                channel.send_data(stdin)
                channel.eof()
            return drive_channel(channel, handler)
