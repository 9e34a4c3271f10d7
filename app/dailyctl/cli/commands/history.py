"""History command for viewing past runs.

This module provides the `dailyctl history` command for viewing how past
maintenance runs ended.
"""

import json
from datetime import datetime
from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from dailyctl.core.state import StateManager
from dailyctl.models.history import RunRecord, StepStatus
from dailyctl.utils.formatting import console, print_info

app = typer.Typer(
    name="history",
    help="View history of maintenance runs.",
    invoke_without_command=True,
)


@app.callback(invoke_without_command=True)
def history(
    ctx: typer.Context,
    limit: Annotated[
        int,
        typer.Option(
            "--limit",
            "-n",
            help="Maximum number of runs to show.",
        ),
    ] = 20,
    failed: Annotated[
        bool,
        typer.Option(
            "--failed",
            help="Only show runs that did not exit with code 0.",
        ),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option(
            "--json",
            help="Output as JSON.",
        ),
    ] = False,
) -> None:
    """Show history of maintenance runs.

    Examples:
        dailyctl history            # Show last 20 runs
        dailyctl history -n 50      # Show last 50 runs
        dailyctl history --failed   # Only runs with a non-zero exit code
        dailyctl history --json     # JSON output for scripting
    """
    if ctx.invoked_subcommand is not None:
        return

    records = StateManager().get_history()
    if failed:
        records = [record for record in records if not record.success]
    records = records[:limit]

    if not records:
        print_info("No history entries found.")
        return

    if json_output:
        typer.echo(json.dumps([record.to_dict() for record in records], indent=2))
    else:
        _print_table(records)


def _print_table(records: list[RunRecord]) -> None:
    """Print run records as a Rich table."""
    table = Table(title="Maintenance Runs")
    table.add_column("ID", style="dim")
    table.add_column("Timestamp", style="cyan")
    table.add_column("Command", style="white")
    table.add_column("Steps", style="white")
    table.add_column("Exit", justify="right")

    for record in records:
        failed = sum(1 for step in record.steps if step.status != StepStatus.OK)
        steps = f"{len(record.steps)}"
        if failed:
            steps += f" ({failed} not ok)"
        exit_style = "green" if record.success else "red"
        table.add_row(
            record.id[:8],
            _format_timestamp(record.timestamp),
            escape(record.command),
            steps,
            f"[{exit_style}]{record.exit_code}[/]",
        )

    console.print(table)


def _format_timestamp(iso_timestamp: str) -> str:
    """Format an ISO timestamp as YYYY-MM-DD HH:MM."""
    dt = datetime.fromisoformat(iso_timestamp.replace("Z", "+00:00"))
    return dt.strftime("%Y-%m-%d %H:%M")
