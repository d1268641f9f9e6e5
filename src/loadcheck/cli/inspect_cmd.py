"""``loadcheck inspect``: validate a scenario file and list its requests."""

from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from loadcheck._internal.errors import LoadCheckError
from loadcheck.dsl.loader import load_scenario

console = Console(stderr=True)


def inspect_cmd(
    scenario_file: Path = typer.Argument(
        ...,
        help="Path to the scenario .yaml/.json file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
) -> None:
    """Validate a scenario and print its groups and requests."""
    try:
        scenario = load_scenario(scenario_file)
    except LoadCheckError as exc:
        console.print(f"[red]Invalid scenario:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    table = Table(
        title=f"{scenario.name} ({scenario.base_url})",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("Group")
    table.add_column("#", justify="right")
    table.add_column("Method")
    table.add_column("Path")
    table.add_column("Expect", justify="right")
    table.add_column("Sleep", justify="right")

    for group in scenario.groups:
        for index, spec in enumerate(group.requests, start=1):
            table.add_row(
                group.name,
                str(index),
                spec.method.value,
                spec.path,
                str(spec.expected_status),
                f"{spec.post_delay_seconds:g}s" if spec.post_delay_seconds else "-",
            )

    console.print(table)
    console.print(
        f"[green]OK:[/green] {scenario.request_count} request(s) in "
        f"{len(scenario.groups)} group(s), login at {scenario.auth.login_url}"
    )
