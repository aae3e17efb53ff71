"""Typer CLI: run commands and copy files on configured hosts."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Annotated, Optional

import paramiko  # type: ignore[import-untyped]
import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import Config, ConfigError, load_config, lookup_host
from .output import (
    OutputFormat,
    print_config_error,
    print_human_hosts,
    print_remote_error,
)
from .remote import RemoteError
from .shell import RemoteShell

_REMOTE_FAILURES = (RemoteError, paramiko.SSHException, OSError)

app = typer.Typer(
    name="remexec",
    help="Remote command execution over SSH",
    no_args_is_help=True,
)


@app.callback()
def main_options(
    verbose: Annotated[
        int,
        typer.Option(
            "--verbose",
            "-v",
            count=True,
            help="Increase log verbosity (-v, -vv)",
        ),
    ] = 0,
) -> None:
    """Remote command execution over SSH."""
    _configure_logging(verbose)


@app.command()
def hosts(
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
    output: Annotated[
        OutputFormat,
        typer.Option("--output", "-o", help="Output format"),
    ] = OutputFormat.HUMAN,
) -> None:
    """List configured hosts."""
    cfg = _load_config_or_exit(config)
    match output:
        case OutputFormat.JSON:
            data = [
                {
                    "name": slug,
                    "host": h.host,
                    "user": h.user,
                    "su_user": h.options.su_user,
                }
                for slug, h in cfg.hosts.items()
            ]
            typer.echo(json.dumps(data, indent=2))
        case OutputFormat.HUMAN:
            print_human_hosts(cfg)


@app.command(name="exec")
def exec_command(
    host: Annotated[str, typer.Argument(help="Host name from the config")],
    command: Annotated[str, typer.Argument(help="Command to run")],
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
    done_string: Annotated[
        Optional[str],
        typer.Option(
            "--done-string",
            help="Stop collecting output at this line",
        ),
    ] = None,
    stdin_file: Annotated[
        Optional[Path],
        typer.Option(
            "--stdin-file",
            help="Send this file's content to the command's input",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    output: Annotated[
        OutputFormat,
        typer.Option("--output", "-o", help="Output format"),
    ] = OutputFormat.HUMAN,
) -> None:
    """Run a command, as the su user when one is configured."""
    shell = _shell_or_exit(_load_config_or_exit(config), host)
    stdin = stdin_file.read_text() if stdin_file is not None else None

    error: Exception | None = None
    result = ""
    try:
        result = shell.shell_exec(command, done_string, stdin)
    except _REMOTE_FAILURES as e:
        error = e

    match output:
        case OutputFormat.JSON:
            data = {
                "host": host,
                "command": command,
                "success": error is None,
                "output": result,
                "error": str(error) if error is not None else None,
            }
            typer.echo(json.dumps(data, indent=2))
        case OutputFormat.HUMAN:
            if error is not None:
                print_remote_error(error)
            else:
                typer.echo(result, nl=False)

    if error is not None:
        raise typer.Exit(1)


@app.command()
def exists(
    host: Annotated[str, typer.Argument(help="Host name from the config")],
    path: Annotated[str, typer.Argument(help="Remote file path")],
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
) -> None:
    """Check whether a regular file exists on a host."""
    shell = _shell_or_exit(_load_config_or_exit(config), host)
    found = shell.file_exists(path)
    typer.echo("true" if found else "false")
    if not found:
        raise typer.Exit(1)


@app.command()
def get(
    host: Annotated[str, typer.Argument(help="Host name from the config")],
    remote_path: Annotated[str, typer.Argument(help="Remote file path")],
    local_path: Annotated[str, typer.Argument(help="Local file path")],
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
) -> None:
    """Download a file from a host."""
    shell = _shell_or_exit(_load_config_or_exit(config), host)
    try:
        shell.get_file(remote_path, local_path)
    except _REMOTE_FAILURES as e:
        print_remote_error(e)
        raise typer.Exit(1)
    typer.echo(f"{host}:{remote_path} -> {local_path}", err=True)


@app.command()
def put(
    host: Annotated[str, typer.Argument(help="Host name from the config")],
    local_path: Annotated[
        Path,
        typer.Argument(
            help="Local file path", exists=True, dir_okay=False
        ),
    ],
    remote_path: Annotated[str, typer.Argument(help="Remote file path")],
    config: Annotated[
        Optional[str],
        typer.Option("--config", "-c", help="Path to config file"),
    ] = None,
) -> None:
    """Upload a file to a host."""
    shell = _shell_or_exit(_load_config_or_exit(config), host)
    try:
        shell.put_file(remote_path, path=str(local_path))
    except _REMOTE_FAILURES as e:
        print_remote_error(e)
        raise typer.Exit(1)
    typer.echo(f"{local_path} -> {host}:{remote_path}", err=True)


def _configure_logging(verbose: int) -> None:
    if verbose == 0:
        return
    level = logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[
            RichHandler(console=Console(stderr=True), show_path=False)
        ],
        force=True,
    )


def _load_config_or_exit(config_path: str | None) -> Config:
    """Load config or exit with code 2 on error."""
    try:
        return load_config(config_path)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)


def _shell_or_exit(cfg: Config, host: str) -> RemoteShell:
    """Build the shell for *host* or exit with code 2 if unknown."""
    try:
        host_config = lookup_host(cfg, host)
    except ConfigError as e:
        print_config_error(e)
        raise typer.Exit(2)
    return RemoteShell.from_host_config(host_config)


def main() -> None:
    """Main CLI entry point."""
    app()


if __name__ == "__main__":
    main()
