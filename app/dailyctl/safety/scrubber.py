"""Remove secret and sensitive entries from a staging tree.

BE VERY CAREFUL WITH THIS MODULE: it deletes recursively.

The scrubber refuses any target the PathSafetyClassifier does not allow.
For an allowed target it makes one full pass over the tree per
configured pattern, in this order: secret folders, sensitive folders,
secret files. Passes are independent; a failed pass is logged and counted
and the remaining passes still run.

Matching entries are removed according to what they are:

- a symlink is unlinked, its target is never touched;
- a real directory is removed recursively;
- a regular file is unlinked.

Folder names match directories and symlinks by exact base name. File
globs match regular files and symlinks by ``fnmatch`` on the base name.
Symlinks are never followed during the walk.
"""

import fnmatch
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from dailyctl.core.cleanup import Reporter
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.safety.classifier import PathSafetyClassifier, SafetyVerdict, resolve_path
from dailyctl.safety.tree import EntryKind, LocalTreeOps, TreeEntry, TreeOps

logger = logging.getLogger(__name__)


class PatternKind(str, Enum):
    """Category of a scrub pattern."""

    SECRET_FOLDER = "secret folder"
    SENSITIVE_FOLDER = "sensitive folder"
    SECRET_FILE = "secret file"


@dataclass(frozen=True, slots=True)
class ScrubPattern:
    """One pattern, matched once per tree pass.

    Attributes:
        kind: Pattern category.
        pattern: Literal folder name, or a file glob.
    """

    kind: PatternKind
    pattern: str
    _regex: re.Pattern[str] | None = field(default=None, compare=False, repr=False)

    @classmethod
    def folder(cls, kind: PatternKind, name: str) -> "ScrubPattern":
        """Pattern matching a folder (or link) by exact name."""
        return cls(kind=kind, pattern=name)

    @classmethod
    def file_glob(cls, glob: str) -> "ScrubPattern":
        """Pattern matching a file (or link) by shell glob."""
        return cls(
            kind=PatternKind.SECRET_FILE,
            pattern=glob,
            _regex=re.compile(fnmatch.translate(glob)),
        )

    def matches(self, entry: TreeEntry) -> bool:
        """Whether the entry is removed by this pattern."""
        if self._regex is None:
            if entry.kind not in (EntryKind.DIRECTORY, EntryKind.SYMLINK):
                return False
            return entry.name == self.pattern
        if entry.kind not in (EntryKind.FILE, EntryKind.SYMLINK):
            return False
        return self._regex.match(entry.name) is not None


def build_patterns(settings: MaintenanceSettings) -> tuple[ScrubPattern, ...]:
    """Ordered scrub patterns from the settings."""
    patterns: list[ScrubPattern] = []
    patterns.extend(
        ScrubPattern.folder(PatternKind.SECRET_FOLDER, name) for name in settings.secret_folders
    )
    patterns.extend(
        ScrubPattern.folder(PatternKind.SENSITIVE_FOLDER, name)
        for name in settings.sensitive_folders
    )
    patterns.extend(ScrubPattern.file_glob(glob) for glob in settings.secret_files)
    return tuple(patterns)


class ScrubStatus(str, Enum):
    """Overall result of a scrub.

    Attributes:
        CLEAN: Every pass completed without error.
        UNSAFE: The target was refused; nothing was touched.
        PARTIAL_FAILURE: At least one pass failed; the tree must not be
            treated as safe to publish.
    """

    CLEAN = "clean"
    UNSAFE = "unsafe"
    PARTIAL_FAILURE = "partial_failure"


@dataclass(frozen=True, slots=True)
class ScrubResult:
    """Result of scrubbing one staging path.

    Attributes:
        staging: Resolved staging path.
        status: Overall outcome.
        verdict: Classifier verdict for the staging path.
        removed: Entries removed, in removal order.
        failed_passes: Number of pattern passes that hit an error.
        errors: Error messages from failed passes.
    """

    staging: Path
    status: ScrubStatus
    verdict: SafetyVerdict
    removed: tuple[Path, ...] = ()
    failed_passes: int = 0
    errors: tuple[str, ...] = ()

    @property
    def success(self) -> bool:
        """Whether the staging path is now safe to publish."""
        return self.status == ScrubStatus.CLEAN


@dataclass(slots=True)
class _PassOutcome:
    removed: list[Path] = field(default_factory=lambda: [])
    errors: list[str] = field(default_factory=lambda: [])


class SensitiveScrubber:
    """Removes configured secret and sensitive entries from a tree.

    Failures are reported through a plain Reporter, never escalated, so
    the scrubber is safe to call from cleanup callbacks.
    """

    def __init__(
        self,
        classifier: PathSafetyClassifier,
        patterns: Iterable[ScrubPattern],
        *,
        ops: TreeOps | None = None,
        reporter: Reporter | None = None,
    ) -> None:
        self._classifier = classifier
        self._patterns = tuple(patterns)
        self._ops: TreeOps = ops or LocalTreeOps()
        self._reporter = reporter or Reporter()

    @classmethod
    def from_settings(
        cls,
        settings: MaintenanceSettings,
        *,
        ops: TreeOps | None = None,
        reporter: Reporter | None = None,
    ) -> "SensitiveScrubber":
        """Build a scrubber with the configured roots and patterns."""
        return cls(
            PathSafetyClassifier.from_settings(settings),
            build_patterns(settings),
            ops=ops,
            reporter=reporter,
        )

    @property
    def patterns(self) -> tuple[ScrubPattern, ...]:
        """Patterns in pass order."""
        return self._patterns

    def scrub(self, staging: Path | str) -> ScrubResult:
        """Remove every matching entry below ``staging``.

        Returns:
            ScrubResult; UNSAFE without any filesystem change when the
            classifier refuses the path.
        """
        logger.info("remove_sensitive_data")
        resolved = resolve_path(staging)
        self._reporter.setting("path to remove sensitive data", resolved)

        verdict = self._classifier.classify(resolved)
        if verdict != SafetyVerdict.ALLOWED:
            return ScrubResult(staging=resolved, status=ScrubStatus.UNSAFE, verdict=verdict)

        removed: list[Path] = []
        errors: list[str] = []
        failed_passes = 0
        for pattern in self._patterns:
            self._reporter.setting(f"{pattern.kind.value} to remove", pattern.pattern)
            outcome = self._run_pass(resolved, pattern)
            removed.extend(outcome.removed)
            if outcome.errors:
                failed_passes += 1
                errors.extend(outcome.errors)
                self._reporter.report(1, f"removing {pattern.kind.value}s ({pattern.pattern})")

        status = ScrubStatus.PARTIAL_FAILURE if failed_passes else ScrubStatus.CLEAN
        return ScrubResult(
            staging=resolved,
            status=status,
            verdict=verdict,
            removed=tuple(removed),
            failed_passes=failed_passes,
            errors=tuple(errors),
        )

    def _run_pass(self, root: Path, pattern: ScrubPattern) -> _PassOutcome:
        """Walk the whole tree once, removing entries matching one pattern."""
        outcome = _PassOutcome()
        pending = [root]
        while pending:
            directory = pending.pop()
            try:
                entries = self._ops.list_dir(directory)
            except FileNotFoundError as e:
                if directory == root:
                    outcome.errors.append(f"cannot list {directory}: {e}")
                continue
            except OSError as e:
                logger.warning("Cannot list %s: %s", directory, e)
                outcome.errors.append(f"cannot list {directory}: {e}")
                continue

            for entry in entries:
                if pattern.matches(entry):
                    self._remove(entry, outcome)
                elif entry.kind == EntryKind.DIRECTORY:
                    pending.append(entry.path)
        return outcome

    def _remove(self, entry: TreeEntry, outcome: _PassOutcome) -> None:
        try:
            if entry.kind == EntryKind.DIRECTORY:
                self._ops.remove_tree(entry.path)
            else:
                self._ops.remove_entry(entry.path)
        except OSError as e:
            logger.warning("Cannot remove %s: %s", entry.path, e)
            outcome.errors.append(f"cannot remove {entry.path}: {e}")
            return
        logger.info("removed %s %s", entry.kind.value, entry.path)
        outcome.removed.append(entry.path)
