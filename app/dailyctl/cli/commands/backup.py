"""Backup commands.

Local backups go to the configured encrypted disks; remote backups go to
an rsync destination.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from dailyctl.backup.local import LocalBackup
from dailyctl.backup.remote import RemoteBackup
from dailyctl.cli.types import open_session
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.utils.formatting import console, create_result_table

app = typer.Typer(
    help="Back up the home directory locally or remotely.",
    no_args_is_help=True,
)


@app.command()
def local(ctx: typer.Context) -> None:
    """Back up the home directory to every configured encrypted disk."""
    with open_session(ctx, "dailyctl backup local") as session:
        backup = LocalBackup(session.settings, session.escalator)
        session.register("local backup", backup.cleanup)

        outcomes = backup.run()
        for outcome in outcomes:
            session.record(outcome)
        _print_outcomes(outcomes)


@app.command()
def remote(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(help="Directory to back up.")],
    destination: Annotated[
        str | None,
        typer.Argument(help="rsync destination. Defaults to the configured remote_backup."),
    ] = None,
) -> None:
    """Back up a directory to a remote rsync destination."""
    with open_session(ctx, f"dailyctl backup remote {source}") as session:
        backup = RemoteBackup(session.settings, session.escalator)
        session.register("remote backup", backup.cleanup)

        outcome = backup.run(source, destination or session.settings.remote_backup or "")
        session.record(outcome)
        _print_outcomes([outcome])


def _print_outcomes(outcomes: list[StepOutcome]) -> None:
    """Display backup step outcomes."""
    table = create_result_table("Backups", "Step", "Status", "Detail")
    styles = {
        StepStatus.OK: "success",
        StepStatus.FAILED: "error",
        StepStatus.SKIPPED: "muted",
        StepStatus.ABORTED: "warning",
    }
    for outcome in outcomes:
        style = styles[outcome.status]
        table.add_row(
            escape(outcome.name),
            f"[{style}]{outcome.status.value}[/]",
            escape(outcome.detail or ""),
        )
    console.print(table)
