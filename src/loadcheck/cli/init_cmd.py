"""``loadcheck init``: scaffold a new scenario file from a template."""

from __future__ import annotations

from pathlib import Path
from string import Template

import typer
from rich.console import Console

console = Console(stderr=True)

_SCENARIO_TEMPLATE = Template('''\
# Scenario: $name
#
# Run with:
#     loadcheck run $filename --users 1 --iterations 1

name: $name
base_url: http://localhost:8080
sleep_duration: 0.1

auth:
  url: http://localhost:12340
  username: admin
  password: "222222"

groups:
  - name: /api/v1/$service/welcome
    requests:
      - method: GET
        path: /api/v1/$service/welcome
        expect: 200
''')


def init_cmd(
    name: str = typer.Argument(
        "my_scenario",
        help="Name for the scenario (used as filename).",
    ),
) -> None:
    """Scaffold a new scenario file in the current directory."""
    safe_name = "".join(c if c.isalnum() or c in "_-" else "_" for c in name).lower()
    if not safe_name:
        safe_name = "scenario"

    filename = f"{safe_name}.yaml"
    target = Path.cwd() / filename
    if target.exists():
        console.print(f"[red]File already exists:[/red] {filename}")
        raise typer.Exit(code=1)

    content = _SCENARIO_TEMPLATE.substitute(
        name=safe_name,
        filename=filename,
        service=safe_name.replace("_", "").replace("-", ""),
    )
    target.write_text(content)
    console.print(f"[green]Created scenario:[/green] {filename}")
