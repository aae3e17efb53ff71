"""Remote shell facade."""

from __future__ import annotations

import logging
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import IO, Any, Iterator, Mapping, Optional, Union

from .config import ExecutionOptions, HostConfig
from .remote import (
    CommandExecutor,
    ElevatedCommandExecutor,
    ParamikoSessionProvider,
    Session,
    SessionGateway,
    SessionProvider,
    SftpStagingArea,
    download,
    temp_cmd_file,
    upload,
)

Options = Union[Mapping[str, Any], ExecutionOptions]


class RemoteShell:
    """Runs commands and copies files on one remote host.

    Every operation opens its own session and closes it before
    returning; instances hold configuration only.

    *options* may hold transport options, which are passed unchanged to
    the session provider, and the local options:

    - ``remember_host``: record an unknown or changed host key and retry
      the connection once (default False).
    - ``su_user`` / ``su_password``: run every ``shell_exec`` command as
      *su_user* through ``su``.
    - ``passwordless_sudo``: prefix every ``exec`` command with ``sudo``.

    Defaults: ``verbose="warn"``, ``non_interactive=True``,
    ``use_agent=False``.
    """

    def __init__(
        self,
        host: str,
        user: str,
        password: str | None = None,
        options: Optional[Options] = None,
        *,
        provider: SessionProvider | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.host = host
        self.user = user
        if isinstance(options, ExecutionOptions):
            merged = options.model_dump(exclude_none=True)
        else:
            merged = dict(options or {})
        if password:
            merged["password"] = password
        self._options = ExecutionOptions.model_validate(merged)
        self._logger = logger or logging.getLogger(__name__)
        self._gateway = SessionGateway(
            host,
            user,
            self._options.transport_options(),
            remember_host=self._options.remember_host,
            provider=provider,
            logger=self._logger,
        )

    @classmethod
    def from_host_config(
        cls,
        config: HostConfig,
        *,
        logger: logging.Logger | None = None,
    ) -> RemoteShell:
        """Build a shell for an inventory entry."""
        return cls(
            config.host,
            config.user,
            config.password,
            config.options,
            provider=ParamikoSessionProvider(config.known_hosts_file),
            logger=logger,
        )

    @classmethod
    @contextmanager
    def shell_with_su(
        cls,
        host: str,
        remote_user: str,
        remote_password: str | None,
        su_user: str,
        su_password: str,
        options: Optional[Mapping[str, Any]] = None,
        **kwargs: Any,
    ) -> Iterator[RemoteShell]:
        """Yield a shell whose commands run as *su_user*.

        Equivalent to::

            RemoteShell(host, remote_user, remote_password,
                        {**options, "su_user": su_user,
                         "su_password": su_password})
        """
        merged = {
            **(options or {}),
            "su_user": su_user,
            "su_password": su_password,
        }
        yield cls(host, remote_user, remote_password, merged, **kwargs)

    @property
    def options(self) -> dict[str, Any]:
        """The options passed to the transport."""
        return self._options.transport_options()

    @property
    def remember_host(self) -> bool:
        return self._options.remember_host

    @property
    def _header(self) -> str:
        return type(self).__name__

    @contextmanager
    def run_session(self) -> Iterator[Session]:
        """Yield a connected session, closed when the block exits."""
        with self._gateway.session() as session:
            yield session

    def exec(
        self,
        cmd: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> str:
        """Run *cmd* on a non-interactive channel and return its output.

        With ``passwordless_sudo`` the command is prefixed with ``sudo``.
        Collection stops at the first output line equal to *done_string*.
        *stdin* is sent to the command, whose input is then closed.

        A signal, a non-zero exit status, or any stderr output raises
        CommandError.
        """
        if self._options.passwordless_sudo:
            cmd = "sudo " + cmd
        with self.run_session() as session:
            executor = CommandExecutor(
                session, component=self._header, logger=self._logger
            )
            return executor.exec(cmd, done_string, stdin)

    def suexec(
        self,
        cmd_str: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> str:
        """Run *cmd_str* as the ``su_user`` and return its output.

        The command is staged as a script on the remote host, then run
        from a ``su`` session on a pseudo-terminal. From the caller's
        side this behaves like ``exec``.
        """
        elevation = self._options.elevation
        if elevation is None:
            raise ValueError("suexec requires the su_user option")
        with self.run_session() as session:
            with session.open_sftp() as sftp:
                area = SftpStagingArea(sftp)
                with temp_cmd_file(cmd_str, area) as cmd:
                    executor = ElevatedCommandExecutor(
                        session,
                        elevation.user,
                        elevation.password,
                        component=self._header,
                        logger=self._logger,
                    )
                    return executor.suexec(cmd, done_string, stdin)

    @contextmanager
    def temp_cmd_file(self, cmd: str) -> Iterator[str]:
        """Stage *cmd* under /var/tmp and yield the line that runs it.

        For example::

            chmod 700 /var/tmp/remexec-1f2e.sh; /var/tmp/remexec-1f2e.sh; rm -f /var/tmp/remexec-1f2e.sh
        """
        with temp_cmd_file(cmd) as remote_cmd:
            yield remote_cmd

    def shell_exec(
        self,
        cmd: str,
        done_string: str | None = None,
        stdin: str | None = None,
    ) -> str:
        """Run *cmd* with ``suexec`` if ``su_user`` is set, else ``exec``.

        A terminal escape left at the end of ``suexec`` output is removed.
        """
        if self._options.elevation is None:
            return self.exec(cmd, done_string, stdin)
        output = self.suexec(cmd, done_string, stdin)
        return output.removesuffix("\x1b")

    def file_exists(self, filename: str) -> bool:
        """Whether the regular file *filename* exists on the host.

        *filename* is passed to ``test -f`` as given, so the remote shell
        expands ``~`` and variables in it; quote it yourself when it may
        hold spaces or other shell syntax.

        With ``su_user`` set the answer is only as good as the ``su``
        dialog: the staged script's exit status is not seen there, so a
        missing file still yields True once the shell prompt comes back.
        """
        try:
            self.shell_exec(f"test -f {filename}")
        except Exception:
            # Any failure at all counts as "no such file".
            return False
        return True

    def get_file(
        self, from_path: str, to: Union[str, IO[bytes]]
    ) -> Union[str, IO[bytes]]:
        """Copy remote *from_path* to the local path or file object *to*."""
        header = f"{self._header}#get_file"
        with self.run_session() as session:
            self._logger.debug(
                "%s - Copying file %s:%s to %s.",
                header,
                self.host,
                from_path,
                to,
            )
            download(session, from_path, to)
            self._logger.debug(
                "%s - Copying of %s:%s to %s, complete.",
                header,
                self.host,
                from_path,
                to,
            )
        return to

    def put_file(
        self,
        to: str,
        content: str | bytes | None = None,
        path: str | None = None,
    ) -> None:
        """Write *content*, or the local file at *path*, to remote *to*."""
        if content is not None:
            data = content.encode() if isinstance(content, str) else content
        elif path is not None:
            data = Path(path).read_bytes()
        else:
            raise ValueError("Need to provide either content or path")
        header = f"{self._header}#put_file"
        with self.run_session() as session:
            self._logger.debug(
                "%s - Copying file to %s:%s.", header, self.host, to
            )
            upload(session, to, data)
            self._logger.debug(
                "%s - Copying of file to %s:%s, complete.",
                header,
                self.host,
                to,
            )

    @contextmanager
    def file_open(self, file_path: str, mode: str = "r") -> Iterator[IO[Any]]:
        """Download *file_path* and yield the local copy opened in *mode*."""
        fd, local_path = tempfile.mkstemp(prefix="remexec-")
        os.close(fd)
        try:
            self.get_file(file_path, local_path)
            with open(local_path, mode) as f:
                yield f
        finally:
            os.unlink(local_path)
