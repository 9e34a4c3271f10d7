"""Archive manifests.

Before an archive's cleartext view is unmounted, a listing of everything
in it is appended to a text file in the home directory. The manifest is
the only record of what went into each archive run.
"""

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from dailyctl.utils.naming import path_as_name

logger = logging.getLogger(__name__)

_BRANCH = "├── "
_LAST = "└── "
_PIPE = "│   "
_SPACE = "    "


def manifest_path(directory: Path, stamp: str, encrypted_dir: Path) -> Path:
    """Location of the manifest for one archive run.

    Returns:
        ``<directory>/<stamp>-<encrypted dir as name>.txt``.
    """
    return directory / f"{stamp}-{path_as_name(str(encrypted_dir))}.txt"


def iter_tree_lines(root: Path) -> Iterator[str]:
    """Render a directory tree the way ``tree`` prints it.

    Symlinks are shown with their target and never followed. The last
    line counts directories and files.

    Raises:
        OSError: If the root directory cannot be listed.
    """
    counts = [0, 0]
    yield str(root)
    yield from _iter_children(root, "", counts, is_root=True)
    yield ""
    directories, files = counts
    yield f"{directories} {'directory' if directories == 1 else 'directories'}, " + (
        f"{files} {'file' if files == 1 else 'files'}"
    )


def _iter_children(
    directory: Path, prefix: str, counts: list[int], is_root: bool = False
) -> Iterator[str]:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except OSError as e:
        if is_root:
            raise
        logger.warning("Cannot list %s: %s", directory, e)
        return

    for index, entry in enumerate(entries):
        last = index == len(entries) - 1
        connector = _LAST if last else _BRANCH
        if entry.is_symlink():
            counts[1] += 1
            yield f"{prefix}{connector}{entry.name} -> {os.readlink(entry.path)}"
        elif entry.is_dir(follow_symlinks=False):
            counts[0] += 1
            yield f"{prefix}{connector}{entry.name}"
            child_prefix = prefix + (_SPACE if last else _PIPE)
            yield from _iter_children(Path(entry.path), child_prefix, counts)
        else:
            counts[1] += 1
            yield f"{prefix}{connector}{entry.name}"


def write_manifest(path: Path, mapping: str, clear_dir: Path) -> Path:
    """Append the mapping line and a tree listing of ``clear_dir``.

    Args:
        path: Manifest file; created if missing, appended to otherwise.
        mapping: Line identifying the archived mapping.
        clear_dir: Cleartext tree to list.

    Returns:
        The manifest path.

    Raises:
        OSError: If the manifest cannot be written or the tree read.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open(mode="a", encoding="utf-8") as f:
        f.write(mapping + "\n")
        for line in iter_tree_lines(clear_dir):
            f.write(line + "\n")
    logger.info("saved the tree of archived folders to %s", path)
    return path
