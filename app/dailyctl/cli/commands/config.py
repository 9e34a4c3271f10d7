"""Settings commands.

Provides commands to write a settings file with the defaults, and to
show the settings in effect.
"""

import json
from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from dailyctl.cli.types import require_settings
from dailyctl.core.paths import ensure_config_dir, get_settings_path
from dailyctl.core.settings import MaintenanceSettings, SettingsError, save_settings
from dailyctl.utils.formatting import (
    console,
    create_result_table,
    print_error,
    print_info,
    print_success,
    print_warning,
)

app = typer.Typer(
    help="Create and inspect the settings file.",
    no_args_is_help=True,
)


@app.command()
def init(
    output: Annotated[
        Path | None,
        typer.Option(
            "--output",
            "-o",
            help="Output path for the settings file.",
        ),
    ] = None,
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            "-f",
            help="Overwrite existing settings without prompting.",
        ),
    ] = False,
) -> None:
    """Write a settings file holding the default settings.

    Examples:
        dailyctl config init
        dailyctl config init --output my.toml
        dailyctl config init --force
    """
    output_path = output or get_settings_path()

    if output_path.exists():
        if not force:
            print_error(f"Settings already exist: {escape(str(output_path))}")
            print_info("Use --force to overwrite or specify a different path with --output.")
            raise typer.Exit(code=1)
        print_warning(f"Overwriting existing settings: {escape(str(output_path))}")

    if output is None:
        ensure_config_dir()

    try:
        saved_path = save_settings(MaintenanceSettings(), output_path)
    except SettingsError as e:
        print_error(escape(str(e)))
        raise typer.Exit(code=1) from e

    print_success(f"Settings written to {escape(str(saved_path))}")


@app.command()
def show(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the settings in effect."""
    settings = require_settings(ctx)

    if json_output:
        typer.echo(json.dumps(settings.model_dump(mode="json"), indent=2))
        return

    table = create_result_table("Settings", "Setting", "Value")
    for key, value in settings.model_dump(mode="json").items():
        if isinstance(value, list):
            value = ", ".join(str(item) for item in value) or "-"
        table.add_row(key, "-" if value is None else escape(str(value)))
    table.add_row(
        "protected roots", escape(", ".join(str(p) for p in settings.protected_roots))
    )
    table.add_row("allowed roots", escape(", ".join(str(p) for p in settings.allowed_roots)))
    table.add_row("rclone config", escape(str(settings.effective_rclone_config)))
    console.print(table)


@app.command()
def path() -> None:
    """Print the default settings file path."""
    typer.echo(str(get_settings_path()))
