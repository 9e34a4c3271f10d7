"""Staging of shared folders for cloud drives.

A source directory lists, in ``.include_shared``, the relative paths it
shares. Each listed subtree is copied into ``<shared_staging>/<source
name>`` and the whole staging root is then scrubbed, so that a cloud
client syncing the staging root never sees keys or VCS metadata.

Cleanup scrubs the staging root once more, in case a copy was cut short
by a signal, and writes the number of staged files to ``FILE_COUNT``.
"""

import logging
import os
import shutil
from pathlib import Path

from dailyctl.core.checks import check_exists
from dailyctl.core.cleanup import Escalator, Reporter
from dailyctl.core.codes import ExitCode
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.safety.classifier import PathSafetyClassifier, SafetyVerdict, resolve_path
from dailyctl.safety.scrubber import ScrubResult, SensitiveScrubber
from dailyctl.utils.shell import ProcessTracker, run_tracked

logger = logging.getLogger(__name__)

INCLUDE_SHARED = ".include_shared"
FILE_COUNT = "FILE_COUNT"


def read_include_list(path: Path) -> list[str]:
    """Relative paths listed in an include file, blank lines skipped."""
    lines = path.read_text(encoding="utf-8").splitlines()
    return [line.strip().strip("/") for line in lines if line.strip()]


def count_files(root: Path) -> int:
    """Number of regular files below root, symlinks not followed."""
    total = 0
    for directory, _dirnames, filenames in os.walk(root):
        for name in filenames:
            path = os.path.join(directory, name)
            if not os.path.islink(path) and os.path.isfile(path):
                total += 1
    return total


class SharedStaging:
    """Prepares a scrubbed copy of shared folders."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        escalator: Escalator,
        *,
        scrubber: SensitiveScrubber | None = None,
        tracker: ProcessTracker | None = None,
    ) -> None:
        self.settings = settings
        self._escalator = escalator
        self._classifier = PathSafetyClassifier.from_settings(settings)
        self._scrubber = scrubber or SensitiveScrubber.from_settings(settings)
        self._tracker = tracker or ProcessTracker()
        self._started = False

    def prepare(self, source: Path | str) -> ScrubResult:
        """Stage every subtree listed in ``<source>/.include_shared``.

        Returns:
            The result of scrubbing the staging root.

        Raises:
            EscalationError: If no staging root is configured, the
                staging area is not a safe removal target, the include file
                or a listed path is missing, or the staging area lies inside
                a listed subtree, or a listed path would be staged outside
                the staging area.
        """
        logger.info("run_shared_preparation")
        staging_root = self._require_staging_root()
        src = resolve_path(source)
        staging_area = resolve_path(staging_root / src.name)

        self._escalator.setting("directory to backup", src)
        self._escalator.setting("path to staging areas", staging_area)
        include = src / INCLUDE_SHARED
        check_exists(self._escalator, include)

        if self._classifier.classify(staging_area) != SafetyVerdict.ALLOWED:
            self._escalator.escalate(
                ExitCode.UNSAFE,
                f"checking staging area {staging_area}",
                f"unsafe to clear {staging_area}",
            )

        self._started = True
        self._clear_folders(staging_area)

        for relative in read_include_list(include):
            shared = src / relative
            check_exists(self._escalator, shared)
            if staging_area.is_relative_to(resolve_path(shared)):
                self._escalator.escalate(
                    ExitCode.BAD_CONFIGURATION,
                    f"staging {shared}",
                    f"{staging_area} is in {shared}",
                )
            target = resolve_path(staging_area / relative)
            if not target.is_relative_to(staging_area):
                self._escalator.escalate(
                    ExitCode.BAD_CONFIGURATION,
                    f"staging {shared}",
                    f"{relative} leads outside {staging_area}",
                )
            target.mkdir(parents=True, exist_ok=True)
            returncode = run_tracked(
                self._tracker,
                ["rsync", "-av", "--links", "--progress", "--delete", f"{shared}/", f"{target}/"],
            )
            if returncode != 0:
                self._escalator.report(returncode, "staging files via rsync")

        result = self._scrubber.scrub(staging_root)
        if not result.success:
            self._escalator.report(1, f"removing sensitive data from {staging_root}")
        return result

    def cleanup(self, reporter: Reporter) -> None:
        """Stop rsync, scrub again and write the file count. Cleanup callback."""
        stopped = self._tracker.terminate_all()
        if stopped:
            reporter.report(stopped, "kill the rsync processes")
        if not self._started or self.settings.shared_staging is None:
            return

        staging_root = self.settings.shared_staging
        result = self._scrubber.scrub(staging_root)
        if not result.success:
            reporter.report(1, f"removing sensitive data from {staging_root}")

        try:
            (staging_root / FILE_COUNT).write_text(f"{count_files(staging_root)}\n")
        except OSError as e:
            logger.error("Cannot write %s: %s", staging_root / FILE_COUNT, e)
            reporter.report(1, "writing the file count")

    def _require_staging_root(self) -> Path:
        staging_root = self.settings.shared_staging
        if staging_root is None:
            self._escalator.escalate(
                ExitCode.MISSING_INPUT,
                "checking shared staging",
                "cannot run without path to shared staging",
            )
        return staging_root

    def _clear_folders(self, staging_area: Path) -> None:
        """Remove the folders (not files) directly inside the staging area."""
        if not staging_area.is_dir():
            return
        for entry in sorted(staging_area.iterdir()):
            if entry.is_dir() and not entry.is_symlink():
                logger.debug("clearing %s", entry)
                shutil.rmtree(entry)
