"""Shared staging command."""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from dailyctl.cli.types import open_session
from dailyctl.core.codes import ExitCode
from dailyctl.daily import scrub_outcome
from dailyctl.sharing.staging import SharedStaging
from dailyctl.utils.formatting import print_error, print_success

app = typer.Typer(
    help="Stage shared folders, scrubbed, for cloud drives.",
    no_args_is_help=True,
)


@app.command()
def prepare(
    ctx: typer.Context,
    source: Annotated[
        Path | None,
        typer.Argument(help="Directory holding .include_shared. Defaults to home."),
    ] = None,
) -> None:
    """Copy the folders listed in .include_shared to the staging root and scrub it."""
    with open_session(ctx, "dailyctl share prepare") as session:
        staging = SharedStaging(session.settings, session.escalator)
        session.register("shared preparation", staging.cleanup)

        result = staging.prepare(source or session.settings.home)
        session.record(scrub_outcome("shared preparation", result))
        if result.success:
            print_success(f"Staged and scrubbed {escape(str(result.staging))}")
        else:
            shown = escape(str(result.staging))
            print_error(f"{shown} is not safe to publish ({result.status.value}).")
            session.exit_code = ExitCode.UNSAFE
