"""Main Typer application, entry point for the ``loadcheck`` CLI."""

from __future__ import annotations

import typer

from loadcheck import __version__
from loadcheck.cli.init_cmd import init_cmd
from loadcheck.cli.inspect_cmd import inspect_cmd
from loadcheck.cli.run import run_cmd

app = typer.Typer(
    name="loadcheck",
    help="Run declarative, authenticated HTTP scenarios and check their status codes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Run a scenario file.")(run_cmd)
app.command("inspect", help="Validate a scenario file and list its requests.")(inspect_cmd)
app.command("init", help="Scaffold a new scenario file.")(init_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"loadcheck {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """loadcheck: declarative authenticated HTTP scenarios."""
