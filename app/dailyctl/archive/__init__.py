"""Encrypted archives synced to object storage."""

from dailyctl.archive.manifest import iter_tree_lines, manifest_path, write_manifest
from dailyctl.archive.pipeline import (
    ArchiveError,
    ArchiveResult,
    ArchiveState,
    EncryptedArchivePipeline,
)

__all__ = [
    "ArchiveError",
    "ArchiveResult",
    "ArchiveState",
    "EncryptedArchivePipeline",
    "iter_tree_lines",
    "manifest_path",
    "write_manifest",
]
