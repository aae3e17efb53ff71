"""CLI output formatting."""

from __future__ import annotations

import enum

from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .config import Config, ConfigError
from .remote import CommandError


class OutputFormat(str, enum.Enum):
    """Output format for CLI commands."""

    HUMAN = "human"
    JSON = "json"


def print_human_hosts(
    config: Config,
    *,
    console: Console | None = None,
) -> None:
    """Print the host inventory as a table."""
    if console is None:
        console = Console()
    table = Table(title="Hosts")
    table.add_column("Name", style="bold")
    table.add_column("Address")
    table.add_column("User")
    table.add_column("Elevation")

    for slug, host in config.hosts.items():
        elevation = host.options.elevation
        if elevation is not None:
            su = Text(f"su {elevation.user}", style="yellow")
        elif host.options.passwordless_sudo:
            su = Text("sudo", style="yellow")
        else:
            su = Text("none", style="dim")
        table.add_row(slug, host.host, host.user, su)

    console.print(table)


def print_remote_error(
    e: Exception,
    *,
    console: Console | None = None,
) -> None:
    """Print a failed remote operation as a Rich panel to stderr."""
    if console is None:
        console = Console(stderr=True)
    match e:
        case CommandError():
            title = f"Command failed ({e.reason})"
            body = str(e)
            if e.stdout:
                body += f"\n\n{e.stdout.rstrip()}"
        case _:
            title = "Remote error"
            body = str(e)
    console.print(Panel(body, title=title, style="red"))


def _describe_location(loc: tuple[int | str, ...]) -> str:
    """Name an inventory location, e.g. ``host 'db1', options``."""
    match loc:
        case ("hosts", slug, *rest):
            where = f"host '{slug}'"
            if rest:
                where += ", " + ".".join(str(p) for p in rest)
            return where
        case ():
            return "inventory"
        case _:
            return ".".join(str(p) for p in loc)


def print_config_error(
    e: ConfigError,
    *,
    console: Console | None = None,
) -> None:
    """Print a ConfigError as a Rich panel to stderr.

    Validation problems are listed one per line under the host they
    belong to.
    """
    if console is None:
        console = Console(stderr=True)
    body = str(e)
    cause = e.__cause__
    if isinstance(cause, ValidationError):
        problems = [
            f"{_describe_location(tuple(err['loc']))}: "
            + err["msg"].removeprefix("Value error, ")
            for err in cause.errors()
        ]
        body += "\n\n" + "\n".join(problems)
    console.print(Panel(body, title="Config error", style="red"))
