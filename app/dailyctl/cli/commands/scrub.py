"""Sensitive-data removal commands.

Provides commands to check whether a directory may be scrubbed, and to
scrub it.
"""

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from dailyctl.cli.types import open_session, require_settings
from dailyctl.core.codes import ExitCode
from dailyctl.daily import scrub_outcome
from dailyctl.safety.classifier import PathSafetyClassifier, SafetyVerdict, resolve_path
from dailyctl.safety.scrubber import ScrubResult, ScrubStatus, SensitiveScrubber
from dailyctl.utils.formatting import (
    console,
    create_result_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Remove secret and sensitive files from staging trees.",
    no_args_is_help=True,
)


@app.command()
def check(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Directory to check.")],
) -> None:
    """Check whether a directory may be scrubbed."""
    settings = require_settings(ctx)
    verdict = PathSafetyClassifier.from_settings(settings).classify(path)
    shown = escape(str(resolve_path(path)))

    if verdict == SafetyVerdict.ALLOWED:
        print_success(f"{shown} may be scrubbed.")
        return

    if verdict == SafetyVerdict.FORBIDDEN_EXACT:
        print_error(f"{shown} is a protected root and is never scrubbed.")
    else:
        print_error(f"{shown} is outside every allowed root.")
    raise typer.Exit(code=ExitCode.UNSAFE)


@app.command("run")
def run_scrub(
    ctx: typer.Context,
    path: Annotated[Path, typer.Argument(help="Directory to scrub.")],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove every secret and sensitive entry below a directory."""
    settings = require_settings(ctx)
    resolved = resolve_path(path)

    if not yes:
        confirmed = typer.confirm(
            f"Permanently remove secret and sensitive files below {resolved}?",
            default=False,
        )
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)

    with open_session(ctx, f"dailyctl scrub run {resolved}") as session:
        result = SensitiveScrubber.from_settings(settings).scrub(resolved)
        session.record(scrub_outcome(f"scrub {resolved}", result))
        _print_result(result)
        if not result.success:
            session.exit_code = ExitCode.UNSAFE


def _print_result(result: ScrubResult) -> None:
    """Display what a scrub removed and how it ended."""
    staging = escape(str(result.staging))
    if result.status == ScrubStatus.UNSAFE:
        print_error(f"Unsafe to remove sensitive data from {staging}")
        return

    if result.removed:
        table = create_result_table("Removed", "Path")
        for removed in result.removed:
            table.add_row(f"[removed]{escape(str(removed))}[/]")
        console.print(table)

    if result.status == ScrubStatus.PARTIAL_FAILURE:
        for error in result.errors:
            print_warning(escape(error))
        print_error(
            f"{result.failed_passes} pass(es) failed; {staging} is not safe to publish."
        )
    else:
        print_success(f"Removed {len(result.removed)} entries from {staging}")
