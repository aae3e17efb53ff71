"""Privilege elevation: running a command through an interactive ``su``.

The ``su`` session runs on a pseudo-terminal. Its output is watched for
a password prompt, then for a superuser prompt, then for the echo of the
command that was typed, and finally for the shell prompt that follows the
command's output:

    initial --"Password:"--> password_sent --"#"--> command_sent
        --echo--> prompt --shell prompt--> done
"""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass

from .channel import Channel
from .execution import ChannelHandler, FailureReason, Outcome, unwrap
from .execution import drive_channel
from .session import Session

PASSWORD_PROMPT_RX = re.compile(r"password:", re.IGNORECASE)

# Common prompts:
#   someuser@somehost ... $    rootuser@somehost ... #
#   [someuser@somehost ...] $  [rootuser@somehost ...] #
SHELL_PROMPT_RX = re.compile(
    r"^\[*[\w\-.]+@[\w\-.]+.+\]*[#$]\s*$", re.MULTILINE | re.ASCII
)

SUPERUSER_MARKER = "#"


class PromptState(str, enum.Enum):
    INITIAL = "initial"
    PASSWORD_SENT = "password_sent"
    COMMAND_SENT = "command_sent"
    PROMPT = "prompt"


@dataclass(frozen=True)
class ChunkClassification:
    """What an output chunk looks like to the elevation dialog."""

    password_prompt: bool
    superuser_marker: bool
    shell_prompt: bool


def classify_chunk(data: str) -> ChunkClassification:
    stripped = data.strip()
    return ChunkClassification(
        password_prompt=PASSWORD_PROMPT_RX.search(stripped) is not None,
        superuser_marker=SUPERUSER_MARKER in stripped,
        shell_prompt=SHELL_PROMPT_RX.search(data) is not None,
    )


def su_command(user: str) -> str:
    """The login command that switches to *user*."""
    if user == "root":
        return "su -l\n"
    else:
        return f"su -l {user}\n"


class ElevationDialog(ChannelHandler):
    """Drives the su conversation and collects the command's output."""

    operation = "suexec"

    def __init__(
        self,
        channel: Channel,
        command: str,
        password: str,
        *,
        done_string: str | None = None,
        component: str = "ElevatedCommandExecutor",
        logger: logging.Logger | None = None,
    ) -> None:
        super().__init__(
            command,
            done_string=done_string,
            component=component,
            logger=logger,
        )
        self._channel = channel
        self._password = password
        self.state = PromptState.INITIAL
        self.prompt = ""
        self.echo = ""

    def on_data(self, data: str) -> Outcome | None:
        self.logger.debug(
            "%s - state: [%s] STDOUT: [%r]",
            self.header,
            self.state.value,
            data,
        )
        chunk = classify_chunk(data)
        match self.state:
            case PromptState.INITIAL:
                self.prompt += data.lstrip()
                if chunk.password_prompt:
                    self.prompt = ""
                    self.logger.debug(
                        "%s - Password Prompt detected: sending su password",
                        self.header,
                    )
                    self._channel.send_data(f"{self._password}\n")
                    self.state = PromptState.PASSWORD_SENT
            case PromptState.PASSWORD_SENT:
                self.prompt += data.lstrip()
                if chunk.superuser_marker:
                    self.logger.debug(
                        "%s - Superuser Prompt detected: sending command %s",
                        self.header,
                        self.command,
                    )
                    self._channel.send_data(f"{self.command}\n")
                    self.state = PromptState.COMMAND_SENT
            case PromptState.COMMAND_SENT:
                self.echo += data
                if self.echo == f"{self.command}\r\n":
                    self.state = PromptState.PROMPT
            case PromptState.PROMPT:
                if chunk.shell_prompt:
                    self.prompt = data
                self.result.stdout += data
                if self.sentinel_seen(data):
                    return self.output()
                stdout = self.result.stdout
                if self.prompt and stdout.endswith(self.prompt):
                    return self.output(stdout[: -len(self.prompt)])
        return None

    def on_close(self) -> Outcome:
        result = self.result
        if self.state in (PromptState.INITIAL, PromptState.PASSWORD_SENT):
            # Authentication never reached a superuser prompt.
            result.stderr += self.prompt
        if result.signal:
            return self.failure(
                FailureReason.SIGNAL,
                f"Command {self.command}, exited with signal {result.signal}",
            )
        if result.status != 0:
            if not result.stderr:
                return self.failure(
                    FailureReason.STATUS,
                    f"Command {self.command}, exited with status"
                    f" {result.status}",
                )
            return self.failure(
                FailureReason.STATUS,
                f"Command {self.command} failed: {result.stderr},"
                f" status: {result.status}",
            )
        if result.stderr:
            return self.failure(
                FailureReason.STDERR,
                f"Command {self.command} failed: {result.stderr}",
            )
        return self.output()


class ElevatedCommandExecutor:
    """Runs commands as another user through ``su`` on a pseudo-terminal.

    *command* is typed at the elevated shell, so it should be a single
    line; ``temp_cmd_file`` turns any script into one.
    """

    pty_width = 256

    def __init__(
        self,
        session: Session,
        su_user: str,
        su_password: str,
        *,
        component: str = "ElevatedCommandExecutor",
        logger: logging.Logger | None = None,
    ) -> None:
        self._session = session
        self.su_user = su_user
        self._su_password = su_password
        self._component = component
        self._logger = logger or logging.getLogger(__name__)

    def suexec(
        self,
        command: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> str:
        """Run *command* as the elevated user and return its output.

        The trailing shell prompt is removed from the output. Raises
        CommandError when no pty is granted, ``su`` cannot start, the
        session is killed by a signal, exits non-zero, reports errors,
        or never gets past authentication.
        """
        return unwrap(self.run(command, done_string, stdin))

    def run(
        self,
        command: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> Outcome:
        with self._session.open_channel() as channel:
            dialog = ElevationDialog(
                channel,
                command,
                self._su_password,
                done_string=done_string,
                component=self._component,
                logger=self._logger,
            )
            # su reads the password from a terminal.
            if not channel.request_pty(width=self.pty_width):
                return dialog.failure(
                    FailureReason.NO_PTY,
                    "Could not obtain pty (i.e. an interactive ssh session)",
                )
            self._logger.debug(
                "%s - Command: [%s] started.", dialog.header, command
            )
            if not channel.exec(su_command(self.su_user)):
                return dialog.failure(
                    FailureReason.NOT_STARTED,
                    f"Could not execute command {command}",
                )
            if stdin:
                channel.send_data(stdin)
                channel.eof()
            return drive_channel(channel, dialog)
