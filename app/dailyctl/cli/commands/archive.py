"""Encrypted archive commands.

Scrub, unmount and sync one encrypted CryFS folder to its rclone
remote, or the offload set of a month.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from dailyctl.archive.pipeline import ArchiveResult, EncryptedArchivePipeline
from dailyctl.cli.types import open_session
from dailyctl.core.settings import validate_month
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.utils.formatting import console, create_result_table, print_info
from dailyctl.utils.naming import current_month

app = typer.Typer(
    help="Archive encrypted folders to object storage.",
    no_args_is_help=True,
)


@app.command("run")
def run_archive(
    ctx: typer.Context,
    clear: Annotated[Path, typer.Argument(help="Cleartext mountpoint of the archive.")],
    encrypted: Annotated[Path, typer.Argument(help="Encrypted folder backing it.")],
    remote: Annotated[str, typer.Argument(help="rclone remote to sync to.")],
) -> None:
    """Scrub, unmount and sync one encrypted folder."""
    with open_session(ctx, f"dailyctl archive run {encrypted} {remote}") as session:
        pipeline = EncryptedArchivePipeline(
            session.settings, session.escalator, stamp=session.stamp
        )
        session.register("archive", pipeline.cleanup)

        result = pipeline.run_archive(clear, encrypted, remote)
        session.record(result.outcome())
        _print_result(result)
        session.exit_code = result.exit_code


@app.command()
def month(
    ctx: typer.Context,
    yyyymm: Annotated[
        str | None,
        typer.Argument(help="Month to offload (YYYYMM). Defaults to the current month."),
    ] = None,
) -> None:
    """Offload the encrypted set of a month, if its folder exists."""
    target = yyyymm or current_month()
    try:
        validate_month(target)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="YYYYMM") from e

    with open_session(ctx, f"dailyctl archive month {target}") as session:
        pipeline = EncryptedArchivePipeline(
            session.settings, session.escalator, stamp=session.stamp
        )
        session.register("archive", pipeline.cleanup)

        result = pipeline.run_monthly_archive(target)
        if result is None:
            print_info(f"Nothing to offload for {target}.")
            session.record(
                StepOutcome(f"archive {target}", StepStatus.SKIPPED, "no offload folder")
            )
            return
        session.record(result.outcome())
        _print_result(result)
        session.exit_code = result.exit_code


def _print_result(result: ArchiveResult) -> None:
    """Display the outcome of one archive run."""
    table = create_result_table("Archive", "Field", "Value")
    table.add_row("Encrypted", escape(str(result.encrypted_dir)))
    table.add_row("Cleartext", escape(str(result.clear_dir)))
    table.add_row("Remote", escape(result.remote))
    table.add_row("States", " → ".join(state.value for state in result.states))
    if result.manifest is not None:
        table.add_row("Manifest", escape(str(result.manifest)))
    if result.error is None:
        table.add_row("Result", "[success]synced[/]")
    else:
        table.add_row("Result", f"[error]{result.error.value}[/]")
    console.print(table)
