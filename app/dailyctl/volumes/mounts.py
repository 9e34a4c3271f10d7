"""Mount table inspection.

Reads /proc/mounts (or any file in the same format) to answer whether a
given source is mounted at a given mountpoint.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

PROC_MOUNTS = Path("/proc/mounts")

# /proc/mounts escapes space, tab, newline and backslash as \ooo
_OCTAL_ESCAPE_RE = re.compile(r"\\([0-7]{3})")


@dataclass(frozen=True, slots=True)
class MountEntry:
    """One line of the mount table.

    Attributes:
        source: Mounted device or filesystem source (e.g. 'cryfs@/mnt/data/archive').
        mountpoint: Where the source is mounted.
        fstype: Filesystem type.
    """

    source: str
    mountpoint: str
    fstype: str


def _unescape(field: str) -> str:
    return _OCTAL_ESCAPE_RE.sub(lambda m: chr(int(m.group(1), 8)), field)


def parse_mounts(text: str) -> list[MountEntry]:
    """Parse mount table text into entries.

    Lines with fewer than three fields are skipped.
    """
    entries: list[MountEntry] = []
    for line in text.splitlines():
        fields = line.split()
        if len(fields) < 3:
            continue
        entries.append(
            MountEntry(
                source=_unescape(fields[0]),
                mountpoint=_unescape(fields[1]),
                fstype=fields[2],
            )
        )
    return entries


def read_mounts(path: Path = PROC_MOUNTS) -> list[MountEntry]:
    """Read the mount table.

    An unreadable table is logged and treated as empty.
    """
    try:
        text = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("Cannot read mount table %s: %s", path, e)
        return []
    return parse_mounts(text)


def is_mounted(
    *,
    source: str | None = None,
    mountpoint: Path | str | None = None,
    path: Path = PROC_MOUNTS,
) -> bool:
    """Check whether a matching mount exists.

    Args:
        source: Required source, or None to accept any.
        mountpoint: Required mountpoint, or None to accept any.
        path: Mount table to read.

    Raises:
        ValueError: If neither source nor mountpoint is given.
    """
    if source is None and mountpoint is None:
        msg = "is_mounted needs a source or a mountpoint"
        raise ValueError(msg)

    target = str(mountpoint) if mountpoint is not None else None
    for entry in read_mounts(path):
        if source is not None and entry.source != source:
            continue
        if target is not None and entry.mountpoint != target:
            continue
        return True
    return False


def cryfs_source(encrypted_dir: Path) -> str:
    """Mount table source of a CryFS mapping for an encrypted folder."""
    return f"cryfs@{encrypted_dir}"
