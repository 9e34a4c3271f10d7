"""Unit tests for local tree operations."""

from pathlib import Path

import pytest
from dailyctl.safety.tree import EntryKind, LocalTreeOps


@pytest.fixture
def ops() -> LocalTreeOps:
    return LocalTreeOps()


class TestLocalTreeOps:
    """Tests for LocalTreeOps."""

    def test_list_dir_kinds(self, ops: LocalTreeOps, tmp_path: Path) -> None:
        """Entries are sorted by name and links are never resolved."""
        (tmp_path / "b_dir").mkdir()
        (tmp_path / "a_file").write_text("x")
        (tmp_path / "c_link").symlink_to(tmp_path / "b_dir")

        entries = ops.list_dir(tmp_path)

        assert [(e.name, e.kind) for e in entries] == [
            ("a_file", EntryKind.FILE),
            ("b_dir", EntryKind.DIRECTORY),
            ("c_link", EntryKind.SYMLINK),
        ]

    def test_remove_tree_refuses_symlink(self, ops: LocalTreeOps, tmp_path: Path) -> None:
        """A link is never removed recursively."""
        target = tmp_path / "target"
        target.mkdir()
        (target / "keep").write_text("x")
        link = tmp_path / "link"
        link.symlink_to(target)

        with pytest.raises(OSError):
            ops.remove_tree(link)

        assert (target / "keep").exists()

    def test_remove_entry_missing_ok(self, ops: LocalTreeOps, tmp_path: Path) -> None:
        """Removing an absent entry is not an error."""
        ops.remove_entry(tmp_path / "absent")

    def test_remove_entry_unlinks_link_only(self, ops: LocalTreeOps, tmp_path: Path) -> None:
        """Removing a link leaves its target."""
        target = tmp_path / "id_rsa.real"
        target.write_text("key")
        link = tmp_path / "id_rsa"
        link.symlink_to(target)

        ops.remove_entry(link)

        assert not link.is_symlink()
        assert target.exists()
