"""Scrubbed staging of shared folders for cloud drives."""

from dailyctl.sharing.staging import (
    FILE_COUNT,
    INCLUDE_SHARED,
    SharedStaging,
    count_files,
    read_include_list,
)

__all__ = [
    "FILE_COUNT",
    "INCLUDE_SHARED",
    "SharedStaging",
    "count_files",
    "read_include_list",
]
