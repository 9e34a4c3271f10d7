"""Shared helpers for CLI commands.

Settings are loaded lazily, once per invocation, from the path given to
the global ``--settings`` option (or the default location).
"""

from pathlib import Path

import typer

from dailyctl.core.codes import ExitCode
from dailyctl.core.session import MaintenanceSession
from dailyctl.core.settings import MaintenanceSettings, SettingsError, get_settings
from dailyctl.utils.formatting import print_error
from dailyctl.utils.naming import make_stamp


def _obj(ctx: typer.Context) -> dict[str, object]:
    root = ctx.find_root()
    root.ensure_object(dict)
    return root.obj  # type: ignore[no-any-return]


def require_settings(ctx: typer.Context) -> MaintenanceSettings:
    """Load the settings for this invocation.

    Raises:
        typer.Exit: With BAD_CONFIGURATION if the settings file is invalid.
    """
    obj = _obj(ctx)
    cached = obj.get("settings")
    if isinstance(cached, MaintenanceSettings):
        return cached

    path = obj.get("settings_path")
    try:
        settings = get_settings(path if isinstance(path, Path) else None)
    except SettingsError as e:
        print_error(str(e))
        raise typer.Exit(code=ExitCode.BAD_CONFIGURATION) from e

    obj["settings"] = settings
    return settings


def get_stamp(ctx: typer.Context) -> str:
    """Run label for this invocation."""
    obj = _obj(ctx)
    stamp = obj.get("stamp")
    if isinstance(stamp, str):
        return stamp
    stamp = make_stamp()
    obj["stamp"] = stamp
    return stamp


def open_session(ctx: typer.Context, command: str) -> MaintenanceSession:
    """Create the session a maintenance command runs in."""
    return MaintenanceSession(require_settings(ctx), command, stamp=get_stamp(ctx))
