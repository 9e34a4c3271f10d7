"""Utility modules for dailyctl.

This module exports commonly used utility functions.
"""

from dailyctl.utils.formatting import (
    console,
    create_result_table,
    err_console,
    print_error,
    print_info,
    print_success,
    print_warning,
)
from dailyctl.utils.shell import CommandResult, ProcessTracker, run_command

__all__ = [
    "CommandResult",
    "ProcessTracker",
    "console",
    "create_result_table",
    "err_console",
    "print_error",
    "print_info",
    "print_success",
    "print_warning",
    "run_command",
]
