"""Unit tests for mount table inspection."""

from pathlib import Path

import pytest
from dailyctl.volumes.mounts import (
    MountEntry,
    cryfs_source,
    is_mounted,
    parse_mounts,
    read_mounts,
)

SAMPLE = """\
sysfs /sys sysfs rw,nosuid,nodev,noexec,relatime 0 0
/dev/mapper/backup1 /mnt/backup1 ext4 rw,relatime 0 0
cryfs@/mnt/data/archive /mnt/data/clear fuse.cryfs rw,nosuid,nodev 0 0
/dev/sdb2 /media/alice/My\\040Disk vfat rw 0 0
broken
"""


class TestParseMounts:
    """Tests for parse_mounts function."""

    def test_parses_entries(self) -> None:
        """Each well-formed line becomes an entry."""
        entries = parse_mounts(SAMPLE)

        assert len(entries) == 4
        assert entries[2] == MountEntry(
            source="cryfs@/mnt/data/archive",
            mountpoint="/mnt/data/clear",
            fstype="fuse.cryfs",
        )

    def test_unescapes_octal(self) -> None:
        """Escaped spaces are decoded."""
        assert parse_mounts(SAMPLE)[3].mountpoint == "/media/alice/My Disk"


class TestIsMounted:
    """Tests for is_mounted function."""

    @pytest.fixture
    def table(self, tmp_path: Path) -> Path:
        path = tmp_path / "mounts"
        path.write_text(SAMPLE)
        return path

    def test_source_and_mountpoint(self, table: Path) -> None:
        """Both source and mountpoint must match when given."""
        assert is_mounted(
            source=cryfs_source(Path("/mnt/data/archive")),
            mountpoint=Path("/mnt/data/clear"),
            path=table,
        )
        assert not is_mounted(
            source=cryfs_source(Path("/mnt/data/archive")),
            mountpoint=Path("/mnt/data/other"),
            path=table,
        )

    def test_mountpoint_only(self, table: Path) -> None:
        """A mountpoint alone is enough."""
        assert is_mounted(mountpoint="/mnt/backup1", path=table)
        assert not is_mounted(mountpoint="/mnt/backup2", path=table)

    def test_requires_criterion(self, table: Path) -> None:
        """Asking with no criterion is an error."""
        with pytest.raises(ValueError):
            is_mounted(path=table)

    def test_unreadable_table(self, tmp_path: Path) -> None:
        """A missing table reads as empty."""
        assert read_mounts(tmp_path / "absent") == []
        assert not is_mounted(mountpoint="/", path=tmp_path / "absent")


def test_cryfs_source() -> None:
    """CryFS mappings show up as cryfs@<encrypted dir>."""
    assert cryfs_source(Path("/mnt/data/archive")) == "cryfs@/mnt/data/archive"
