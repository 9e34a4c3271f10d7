"""Filesystem access used by the scrubber.

The scrubber only lists directories and removes entries. Keeping those
operations behind the TreeOps protocol lets tests run the scrubber
against an in-memory tree.
"""

import os
import shutil
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Protocol


class EntryKind(str, Enum):
    """Type of a directory entry, never following symlinks."""

    FILE = "file"
    DIRECTORY = "directory"
    SYMLINK = "symlink"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class TreeEntry:
    """A directory entry.

    Attributes:
        path: Full path of the entry.
        kind: Entry type; a symlink is always SYMLINK whatever it points to.
    """

    path: Path
    kind: EntryKind

    @property
    def name(self) -> str:
        """Base name of the entry."""
        return self.path.name


class TreeOps(Protocol):
    """Directory listing and removal."""

    def list_dir(self, path: Path) -> list[TreeEntry]:
        """List the entries of a directory.

        Raises:
            OSError: If the directory cannot be read.
        """
        ...

    def remove_tree(self, path: Path) -> None:
        """Remove a real directory and everything below it.

        Raises:
            OSError: If anything cannot be removed.
        """
        ...

    def remove_entry(self, path: Path) -> None:
        """Remove a file or a symlink (never its target).

        Raises:
            OSError: If the entry cannot be removed.
        """
        ...


class LocalTreeOps:
    """TreeOps on the local filesystem."""

    def list_dir(self, path: Path) -> list[TreeEntry]:
        entries: list[TreeEntry] = []
        with os.scandir(path) as it:
            for entry in it:
                entries.append(TreeEntry(path=Path(entry.path), kind=_entry_kind(entry)))
        entries.sort(key=lambda e: e.name)
        return entries

    def remove_tree(self, path: Path) -> None:
        if path.is_symlink():
            msg = f"Refusing to remove a symlink recursively: {path}"
            raise IsADirectoryError(msg)
        shutil.rmtree(path)

    def remove_entry(self, path: Path) -> None:
        path.unlink(missing_ok=True)


def _entry_kind(entry: os.DirEntry[str]) -> EntryKind:
    if entry.is_symlink():
        return EntryKind.SYMLINK
    if entry.is_dir(follow_symlinks=False):
        return EntryKind.DIRECTORY
    if entry.is_file(follow_symlinks=False):
        return EntryKind.FILE
    return EntryKind.OTHER
