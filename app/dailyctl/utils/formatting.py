"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

import sys

from rich.console import Console
from rich.table import Table

from dailyctl.core.theme import get_rich_theme


def _detect_color_system() -> str | None:
    """Detect the best color system for the current terminal.

    Returns "truecolor" for interactive terminals to enable full hex color support,
    None otherwise to let Rich auto-detect.
    """
    if sys.stdout.isatty():
        return "truecolor"
    return None


_theme = get_rich_theme()

# Shared console instances (theme loaded once at import)
console = Console(theme=_theme, color_system=_detect_color_system())
err_console = Console(theme=_theme, stderr=True, color_system=_detect_color_system())


def create_result_table(title: str, *columns: str) -> Table:
    """Create a pre-configured table for step results.

    Args:
        title: Table title.
        columns: Column headers; the first column is rendered bold.

    Returns:
        Rich Table with zebra striping.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    for index, column in enumerate(columns):
        table.add_column(column, style="bold" if index == 0 else None)
    return table


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")
