"""Unit tests for the sensitive-data scrubber.

BE CAREFUL: these tests delete files, always below tmp_path.
"""

from pathlib import Path

import pytest
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.safety.classifier import PathSafetyClassifier, SafetyVerdict
from dailyctl.safety.scrubber import (
    PatternKind,
    ScrubPattern,
    ScrubStatus,
    SensitiveScrubber,
    build_patterns,
)
from dailyctl.safety.tree import EntryKind, TreeEntry


def snapshot(root: Path) -> list[str]:
    """Every path below root, relative and sorted."""
    return sorted(str(p.relative_to(root)) for p in root.rglob("*"))


@pytest.fixture
def scrubber(settings: MaintenanceSettings) -> SensitiveScrubber:
    """Scrubber with the default patterns over the temporary roots."""
    return SensitiveScrubber.from_settings(settings)


@pytest.fixture
def staging(data_root: Path) -> Path:
    """A staging tree under the data root with secrets mixed in."""
    root = data_root / "jail" / "share"
    (root / "docs").mkdir(parents=True)
    (root / "docs" / "report.pdf").write_text("report")
    (root / ".ssh").mkdir()
    (root / ".ssh" / "id_rsa").write_text("key")
    (root / ".git").mkdir()
    (root / ".git" / "config").write_text("[core]")
    return root


class TestBuildPatterns:
    """Tests for build_patterns and ScrubPattern."""

    def test_order(self, settings: MaintenanceSettings) -> None:
        """Secret folders come first, then sensitive folders, then file globs."""
        kinds = [pattern.kind for pattern in build_patterns(settings)]
        secret = len(settings.secret_folders)
        sensitive = len(settings.sensitive_folders)

        assert set(kinds[:secret]) == {PatternKind.SECRET_FOLDER}
        assert set(kinds[secret : secret + sensitive]) == {PatternKind.SENSITIVE_FOLDER}
        assert set(kinds[secret + sensitive :]) == {PatternKind.SECRET_FILE}

    def test_folder_matches_directories_and_links(self) -> None:
        """Folder names match directories and links, never files."""
        pattern = ScrubPattern.folder(PatternKind.SECRET_FOLDER, ".ssh")

        assert pattern.matches(TreeEntry(Path("/s/.ssh"), EntryKind.DIRECTORY))
        assert pattern.matches(TreeEntry(Path("/s/.ssh"), EntryKind.SYMLINK))
        assert not pattern.matches(TreeEntry(Path("/s/.ssh"), EntryKind.FILE))
        assert not pattern.matches(TreeEntry(Path("/s/.sshd"), EntryKind.DIRECTORY))

    def test_glob_matches_files_and_links(self) -> None:
        """File globs match files and links, never directories."""
        pattern = ScrubPattern.file_glob("id_rsa*")

        assert pattern.matches(TreeEntry(Path("/s/id_rsa.pub"), EntryKind.FILE))
        assert pattern.matches(TreeEntry(Path("/s/id_rsa"), EntryKind.SYMLINK))
        assert not pattern.matches(TreeEntry(Path("/s/id_rsa.d"), EntryKind.DIRECTORY))
        assert not pattern.matches(TreeEntry(Path("/s/my_id_rsa"), EntryKind.FILE))


class TestScrub:
    """Tests for SensitiveScrubber.scrub on the real filesystem."""

    def test_share_scenario(self, scrubber: SensitiveScrubber, staging: Path) -> None:
        """Documents stay; .ssh and .git go."""
        result = scrubber.scrub(staging)

        assert result.status == ScrubStatus.CLEAN
        assert result.success
        assert (staging / "docs" / "report.pdf").exists()
        assert not (staging / ".ssh").exists()
        assert not (staging / ".git").exists()
        assert set(result.removed) == {staging / ".ssh", staging / ".git"}

    def test_home_is_unsafe(self, scrubber: SensitiveScrubber, home: Path) -> None:
        """Scrubbing the home directory is refused without touching it."""
        (home / ".ssh").mkdir()
        (home / ".ssh" / "id_ed25519").write_text("key")
        before = snapshot(home)

        result = scrubber.scrub(home)

        assert result.status == ScrubStatus.UNSAFE
        assert result.verdict == SafetyVerdict.FORBIDDEN_EXACT
        assert snapshot(home) == before

    def test_outside_jail_is_unsafe(self, scrubber: SensitiveScrubber, tmp_path: Path) -> None:
        """A tree outside the allowed roots is left alone."""
        outside = tmp_path / "elsewhere"
        outside.mkdir()
        (outside / "server.pem").write_text("cert")

        result = scrubber.scrub(outside)

        assert result.verdict == SafetyVerdict.FORBIDDEN_OUTSIDE_JAIL
        assert (outside / "server.pem").exists()

    def test_symlink_target_survives(
        self, scrubber: SensitiveScrubber, staging: Path, tmp_path: Path
    ) -> None:
        """A matching link is removed as a link; its target is kept."""
        sentinel_dir = tmp_path / "sentinel"
        sentinel_dir.mkdir()
        sentinel = sentinel_dir / "keep.txt"
        sentinel.write_text("keep")
        (staging / ".gnupg").symlink_to(sentinel_dir)
        (staging / "id_rsa").symlink_to(sentinel)

        result = scrubber.scrub(staging)

        assert result.success
        assert not (staging / ".gnupg").is_symlink()
        assert not (staging / "id_rsa").is_symlink()
        assert sentinel.read_text() == "keep"

    def test_symlinks_not_followed(
        self, scrubber: SensitiveScrubber, staging: Path, tmp_path: Path
    ) -> None:
        """Secrets behind a non-matching link are outside the tree."""
        outside = tmp_path / "outside"
        (outside / ".ssh").mkdir(parents=True)
        (staging / "linked").symlink_to(outside)

        scrubber.scrub(staging)

        assert (outside / ".ssh").is_dir()

    def test_nested_secrets(self, scrubber: SensitiveScrubber, staging: Path) -> None:
        """Matches are found at any depth."""
        deep = staging / "a" / "b" / "c"
        deep.mkdir(parents=True)
        (deep / "backup.key").write_text("k")
        (deep / ".password-store").mkdir()
        (deep / "notes.md").write_text("n")

        scrubber.scrub(staging)

        assert snapshot(deep) == ["notes.md"]

    def test_file_named_like_folder_kept(
        self, scrubber: SensitiveScrubber, staging: Path
    ) -> None:
        """A regular file named like a folder pattern is not a folder match."""
        (staging / "docs" / ".local").write_text("not a folder")

        scrubber.scrub(staging)

        assert (staging / "docs" / ".local").exists()

    def test_idempotent(self, scrubber: SensitiveScrubber, staging: Path) -> None:
        """A second scrub finds nothing and reports no error."""
        scrubber.scrub(staging)
        after_first = snapshot(staging)

        second = scrubber.scrub(staging)

        assert second.status == ScrubStatus.CLEAN
        assert second.removed == ()
        assert snapshot(staging) == after_first

    def test_missing_staging(self, scrubber: SensitiveScrubber, data_root: Path) -> None:
        """A missing (but allowed) staging root is a failure, not a clean tree."""
        result = scrubber.scrub(data_root / "absent")

        assert result.status == ScrubStatus.PARTIAL_FAILURE
        assert not result.success


class FakeTree:
    """In-memory TreeOps: directories map to their entries."""

    def __init__(self, entries: dict[Path, list[TreeEntry]]) -> None:
        self.entries = entries
        self.removed: list[Path] = []
        self.fail_remove: set[Path] = set()
        self.fail_list: set[Path] = set()

    def list_dir(self, path: Path) -> list[TreeEntry]:
        if path in self.fail_list:
            raise PermissionError(f"cannot read {path}")
        if path not in self.entries:
            raise FileNotFoundError(path)
        return list(self.entries[path])

    def remove_tree(self, path: Path) -> None:
        self._remove(path)

    def remove_entry(self, path: Path) -> None:
        self._remove(path)

    def _remove(self, path: Path) -> None:
        if path in self.fail_remove:
            raise PermissionError(f"cannot remove {path}")
        self.removed.append(path)
        parent = path.parent
        self.entries[parent] = [e for e in self.entries.get(parent, []) if e.path != path]
        for directory in [d for d in self.entries if d.is_relative_to(path)]:
            del self.entries[directory]


class TestScrubWithFakeTree:
    """Tests for pass ordering and failure handling, without a filesystem."""

    ROOT = Path("/allowed/share")

    @pytest.fixture
    def tree(self) -> FakeTree:
        root = self.ROOT
        return FakeTree(
            {
                root: [
                    TreeEntry(root / ".git", EntryKind.DIRECTORY),
                    TreeEntry(root / ".ssh", EntryKind.DIRECTORY),
                    TreeEntry(root / "src", EntryKind.DIRECTORY),
                ],
                root / ".git": [TreeEntry(root / ".git" / "deploy.pem", EntryKind.FILE)],
                root / ".ssh": [TreeEntry(root / ".ssh" / "id_rsa", EntryKind.FILE)],
                root / "src": [
                    TreeEntry(root / "src" / "main.py", EntryKind.FILE),
                    TreeEntry(root / "src" / "tls.key", EntryKind.FILE),
                ],
            }
        )

    def make_scrubber(self, tree: FakeTree) -> SensitiveScrubber:
        classifier = PathSafetyClassifier([Path("/home/alice")], [Path("/allowed")])
        patterns = [
            ScrubPattern.folder(PatternKind.SECRET_FOLDER, ".ssh"),
            ScrubPattern.folder(PatternKind.SENSITIVE_FOLDER, ".git"),
            ScrubPattern.file_glob("*.key"),
        ]
        return SensitiveScrubber(classifier, patterns, ops=tree)

    def test_pass_order(self, tree: FakeTree) -> None:
        """Removals follow pattern order, one pass per pattern."""
        result = self.make_scrubber(tree).scrub(self.ROOT)

        assert result.success
        assert tree.removed == [
            self.ROOT / ".ssh",
            self.ROOT / ".git",
            self.ROOT / "src" / "tls.key",
        ]

    def test_failed_pass_does_not_stop_others(self, tree: FakeTree) -> None:
        """A pass that cannot remove an entry is counted; later passes still run."""
        tree.fail_remove.add(self.ROOT / ".ssh")

        result = self.make_scrubber(tree).scrub(self.ROOT)

        assert result.status == ScrubStatus.PARTIAL_FAILURE
        assert result.failed_passes == 1
        assert self.ROOT / ".git" in tree.removed
        assert self.ROOT / "src" / "tls.key" in tree.removed
        assert len(result.errors) == 1

    def test_unreadable_directory_fails_pass(self, tree: FakeTree) -> None:
        """A directory that cannot be listed fails every pass that reaches it."""
        tree.fail_list.add(self.ROOT / "src")

        result = self.make_scrubber(tree).scrub(self.ROOT)

        assert result.status == ScrubStatus.PARTIAL_FAILURE
        assert result.failed_passes == 3

    def test_refused_root_never_listed(self, tree: FakeTree) -> None:
        """An unsafe target is refused before any listing."""
        tree.fail_list.add(Path("/home/alice"))

        result = self.make_scrubber(tree).scrub("/home/alice")

        assert result.status == ScrubStatus.UNSAFE
        assert tree.removed == []
