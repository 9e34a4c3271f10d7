"""CLI commands for dailyctl.

This package contains all subcommand implementations.
"""

from dailyctl.cli.commands import archive, backup, config, history, run, scrub, share

__all__ = ["archive", "backup", "config", "history", "run", "scrub", "share"]
