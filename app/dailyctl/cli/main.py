"""Main CLI application entry point.

Defines the Typer application and global options.
"""

from pathlib import Path
from typing import Annotated

import typer

from dailyctl import __version__
from dailyctl.cli.commands import archive, backup, config, history, run, scrub, share
from dailyctl.utils.logs import configure_logging
from dailyctl.utils.naming import make_stamp

# Create main Typer app
app = typer.Typer(
    name="dailyctl",
    help="Daily maintenance for a personal workstation.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        typer.echo(f"dailyctl version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Enable verbose output.",
        ),
    ] = False,
    settings_path: Annotated[
        Path | None,
        typer.Option(
            "--settings",
            "-s",
            help="Settings file to use instead of ~/.config/dailyctl/settings.toml.",
        ),
    ] = None,
) -> None:
    """dailyctl - Daily maintenance for a personal workstation.

    Scrubs secrets from staging trees, archives encrypted folders to
    object storage, and never leaves a backup volume unlocked.
    """
    stamp = make_stamp()
    configure_logging(stamp, verbose=verbose)

    # Store options in context for subcommands
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    ctx.obj["stamp"] = stamp
    ctx.obj["settings_path"] = settings_path


# Register commands
app.add_typer(run.app, name="run")
app.add_typer(scrub.app, name="scrub")
app.add_typer(archive.app, name="archive")
app.add_typer(backup.app, name="backup")
app.add_typer(share.app, name="share")
app.add_typer(config.app, name="config")
app.add_typer(history.app, name="history")


if __name__ == "__main__":
    app()
