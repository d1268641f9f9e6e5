"""``loadcheck run``: execute a scenario with live terminal output."""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.table import Table

from loadcheck._internal.config import load_config
from loadcheck._internal.errors import LoadCheckError
from loadcheck._internal.logging import setup_logging
from loadcheck.dsl.loader import load_scenario
from loadcheck.engine.session import LoadSession, run_session
from loadcheck.metrics.export import write_report

if TYPE_CHECKING:
    from loadcheck.metrics.models import CheckReport, CheckResult

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Rich display
# ---------------------------------------------------------------------------


def _make_live_table(passed: int, failed: int, elapsed: float) -> Table:
    """Build a Rich table with the running check counters.

    Args:
        passed: Passing checks so far.
        failed: Failing checks so far.
        elapsed: Elapsed seconds so far.

    Returns:
        Formatted Rich Table.
    """
    table = Table(show_header=True, header_style="bold cyan", expand=True)
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Elapsed", f"{elapsed:.0f}s")
    table.add_row("Checks", str(passed + failed))
    table.add_row("Passed", f"[green]{passed}[/green]")
    table.add_row("Failed", f"[red]{failed}[/red]" if failed else "0")
    return table


def _print_summary(report: CheckReport) -> None:
    """Print the final summary and per-label breakdown.

    Args:
        report: Completed check report.
    """
    if report.labels:
        label_table = Table(
            title="Checks",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        label_table.add_column("Group")
        label_table.add_column("Request")
        label_table.add_column("Passed", justify="right")
        label_table.add_column("Failed", justify="right")
        label_table.add_column("Statuses", justify="right")
        label_table.add_column("p50", justify="right")
        label_table.add_column("p95", justify="right")

        for summary in report.labels.values():
            statuses = ", ".join(
                f"{status}x{count}" for status, count in sorted(summary.observed_statuses.items())
            )
            if summary.transport_errors:
                statuses = ", ".join(filter(None, [statuses, f"none x{summary.transport_errors}"]))
            label_table.add_row(
                summary.group,
                summary.label,
                str(summary.passed),
                f"[red]{summary.failed}[/red]" if summary.failed else "0",
                statuses,
                f"{summary.latency_p50:.1f}ms",
                f"{summary.latency_p95:.1f}ms",
            )
        console.print(label_table)

    table = Table(
        title="Run Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Scenario", report.scenario_name)
    table.add_row("Duration", f"{report.duration_seconds:.1f}s")
    table.add_row("Virtual Users", str(report.users))
    table.add_row("Aborted Users", str(report.aborted_users))
    table.add_row("Total Checks", str(report.total_checks))
    table.add_row("Passed", str(report.passed))
    table.add_row("Failed", str(report.failed))
    table.add_row("Pass Rate", f"{report.pass_rate * 100:.2f}%")
    console.print(table)

    if report.failed_labels:
        console.print("[red]Failing checks:[/red]")
        for label in report.failed_labels:
            console.print(f"  - {label}")


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    scenario_file: Path = typer.Argument(
        ...,
        help="Path to the scenario .yaml/.json file.",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    users: int = typer.Option(
        1,
        "--users",
        "-u",
        help="Concurrent virtual users.",
        min=1,
    ),
    iterations: int | None = typer.Option(
        None,
        "--iterations",
        "-i",
        help="Iterations per virtual user (default: 1, or unlimited with --duration).",
        min=1,
    ),
    duration: float | None = typer.Option(
        None,
        "--duration",
        "-d",
        help="Stop starting new iterations after this many seconds.",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        help="Override the scenario's base URL.",
    ),
    auth_url: str | None = typer.Option(
        None,
        "--auth-url",
        help="Override the auth service URL.",
    ),
    username: str | None = typer.Option(
        None,
        "--username",
        help="Override the login username.",
    ),
    password: str | None = typer.Option(
        None,
        "--password",
        help="Override the login password.",
    ),
    sleep: float | None = typer.Option(
        None,
        "--sleep",
        help="Override the sleep duration used by 'sleep: true' requests.",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Write the check report as JSON to this file.",
    ),
    fail_on_check: bool = typer.Option(
        False,
        "--fail-on-check",
        help="Exit non-zero if any check fails or any user fails to log in.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit logs as one JSON object per line.",
    ),
) -> None:
    """Execute a scenario and report its checks."""
    setup_logging(
        level=logging.DEBUG if verbose else logging.INFO,
        json_format=json_logs,
    )

    try:
        config = load_config().merged(
            base_url=base_url,
            auth_url=auth_url,
            username=username,
            password=password,
            sleep_duration=sleep,
            request_timeout=timeout,
        )
        scenario = load_scenario(scenario_file, config)
    except LoadCheckError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Scenario:[/bold]   {scenario.name}\n"
            f"[bold]Target:[/bold]     {scenario.base_url}\n"
            f"[bold]Requests:[/bold]   {scenario.request_count} in {len(scenario.groups)} groups\n"
            f"[bold]Users:[/bold]      {users}",
            title="loadcheck",
            border_style="cyan",
        )
    )

    start = time.monotonic()

    try:
        with Live(
            _make_live_table(0, 0, 0.0),
            console=console,
            refresh_per_second=2,
            transient=True,
        ) as live:

            def _on_check(check: CheckResult) -> None:
                # The session records the check before calling back.
                live.update(
                    _make_live_table(
                        session.collector.passed,
                        session.collector.failed,
                        time.monotonic() - start,
                    )
                )

            session = LoadSession(
                scenario,
                users=users,
                iterations=iterations,
                duration_seconds=duration,
                timeout=config.request_timeout,
                on_check=_on_check,
            )
            report = run_session(session)
    except LoadCheckError as exc:
        console.print(f"[red]Run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(report)

    if output is not None:
        write_report(report, output)
        console.print(f"[green]Report written:[/green] {output}")

    if fail_on_check and not report.ok:
        console.print(
            f"[red]FAIL:[/red] {report.failed} failed check(s), "
            f"{report.aborted_users} aborted user(s)"
        )
        raise typer.Exit(code=1)

    console.print("[green]Run completed.[/green]")
