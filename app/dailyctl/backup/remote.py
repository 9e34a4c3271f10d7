"""Remote backup over rsync.

Copies a source directory to ``<destination>/<source name>`` on a machine
the operator administers, excluding whatever ``<source>/.exclude_remote``
lists. Secret folders present in the source must be named in that list
before anything is sent.
"""

import logging
from pathlib import Path

from dailyctl.core.checks import check_contains, check_exists, not_empty
from dailyctl.core.cleanup import Escalator, Reporter
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.safety.classifier import resolve_path
from dailyctl.utils.shell import ProcessTracker, run_tracked

logger = logging.getLogger(__name__)

EXCLUDE_REMOTE = ".exclude_remote"


class RemoteBackup:
    """Backs up directories to a remote rsync destination."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        escalator: Escalator,
        *,
        tracker: ProcessTracker | None = None,
        use_sudo: bool = True,
    ) -> None:
        self.settings = settings
        self._escalator = escalator
        self._tracker = tracker or ProcessTracker()
        self._use_sudo = use_sudo

    def run(self, source: Path | str, destination: str) -> StepOutcome:
        """Back up one source directory.

        Args:
            source: Directory to back up.
            destination: rsync destination (``host:path`` or a local path).

        Raises:
            EscalationError: If the destination is empty, the exclude file
                is missing, or it does not name a secret folder present in
                the source.
        """
        logger.info("run_remote_backup")
        src = resolve_path(source)
        self._escalator.setting("directory to backup", src)
        not_empty(self._escalator, "address and path of remote backups", destination)
        self._escalator.setting("address and path of remote backups", destination)

        exclude = src / EXCLUDE_REMOTE
        check_exists(self._escalator, exclude)
        for name in self.settings.secret_folders:
            if (src / name).is_dir():
                check_contains(self._escalator, exclude, name)

        target = f"{destination.rstrip('/')}/{src.name}"
        args = [
            "rsync",
            "-avz",
            "--links",
            "--progress",
            "--delete",
            "--delete-excluded",
            f"--exclude-from={exclude}",
            f"{src}/",
            f"{target}/",
        ]
        if self._use_sudo:
            args = ["sudo", *args]

        label = f"remote backup {src}"
        returncode = run_tracked(self._tracker, args)
        if returncode != 0:
            self._escalator.report(returncode, "remote backup via rsync")
            return StepOutcome(label, StepStatus.FAILED, f"rsync exited with code {returncode}")
        return StepOutcome(label, StepStatus.OK)

    def cleanup(self, reporter: Reporter) -> None:
        """Stop any rsync this backup started. Cleanup callback."""
        stopped = self._tracker.terminate_all()
        if stopped:
            reporter.report(stopped, "kill the rsync processes")
