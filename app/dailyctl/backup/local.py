"""Local backup to encrypted disks.

Everything in the home directory not listed in ``~/.exclude_local`` is
copied with rsync to each configured backup disk. The disks are unlocked
with a key file and stay mounted until cleanup, which stops rsync,
unmounts them and locks them again.
"""

import logging
from pathlib import Path

from dailyctl.core.checks import check_exists
from dailyctl.core.cleanup import Escalator, Reporter
from dailyctl.core.codes import ExitCode
from dailyctl.core.settings import BackupDisk, MaintenanceSettings
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.utils.shell import ProcessTracker, run_tracked
from dailyctl.volumes.luks import VolumeCloseError, VolumeGuard, VolumeOpenError

logger = logging.getLogger(__name__)

EXCLUDE_LOCAL = ".exclude_local"


def local_rsync_command(
    source: Path, destination: Path, exclude_from: Path, use_sudo: bool = True
) -> list[str]:
    """rsync arguments mirroring ``source`` into ``destination``."""
    args = [
        "rsync",
        "-av",
        "--links",
        "--progress",
        "--delete",
        "--delete-excluded",
        f"--exclude-from={exclude_from}",
        f"{source}/",
        f"{destination}/",
    ]
    return ["sudo", *args] if use_sudo else args


class LocalBackup:
    """Backs up the home directory to every configured encrypted disk."""

    def __init__(
        self,
        settings: MaintenanceSettings,
        escalator: Escalator,
        *,
        guard: VolumeGuard | None = None,
        tracker: ProcessTracker | None = None,
        use_sudo: bool = True,
    ) -> None:
        self.settings = settings
        self._escalator = escalator
        self._guard = guard or VolumeGuard(escalator, use_sudo=use_sudo)
        self._tracker = tracker or ProcessTracker()
        self._use_sudo = use_sudo

    def run(self) -> list[StepOutcome]:
        """Run the backup to each disk in turn.

        A disk that is absent, fails to unlock or lacks the destination
        folder is skipped; the other disks are still backed up.

        Raises:
            EscalationError: If the key file is not configured or
                ``~/.exclude_local`` is missing.
        """
        logger.info("run_local_backup")
        if not self.settings.backup_disks:
            logger.info("no backup disks configured")
            return [StepOutcome("local backup", StepStatus.SKIPPED, "no backup disks configured")]

        key_file = self.settings.backup_key_file
        if key_file is None:
            self._escalator.escalate(
                ExitCode.MISSING_INPUT,
                "checking backup key file",
                "cannot run without the file with encryption key for local backup",
            )
        self._escalator.setting("name of the file with encryption key for local backup", key_file)
        exclude = self.settings.home / EXCLUDE_LOCAL
        check_exists(self._escalator, exclude)

        return [self._backup_to(disk, key_file, exclude) for disk in self.settings.backup_disks]

    def cleanup(self, reporter: Reporter) -> None:
        """Stop rsync, then unmount and lock every disk. Cleanup callback.

        Configured disks are closed by name as well, so a mapping this run
        never tracked is still locked.
        """
        stopped = self._tracker.terminate_all()
        if stopped:
            reporter.report(stopped, "kill the rsync processes")
        self._guard.close_all(reporter)
        for disk in self.settings.backup_disks:
            try:
                self._guard.close_volume(disk.name)
            except VolumeCloseError as e:
                reporter.report(1, str(e))

    def _backup_to(self, disk: BackupDisk, key_file: Path, exclude: Path) -> StepOutcome:
        label = f"local backup {disk.name}"
        self._escalator.setting("device path for local encrypted backup", disk.device)
        self._escalator.setting("name of the backup", disk.name)

        if not Path(disk.device).exists():
            logger.warning("local backup device %s not found", disk.device)
            return StepOutcome(label, StepStatus.SKIPPED, "device not found")

        try:
            handle = self._guard.open_volume(disk.device, key_file, disk.name)
        except VolumeOpenError as e:
            logger.error("%s", e)
            return StepOutcome(label, StepStatus.FAILED, str(e))

        destination = handle.mountpoint / self.settings.home.name
        if not destination.is_dir():
            logger.warning("local backup destination %s not found", destination)
            return StepOutcome(label, StepStatus.SKIPPED, "destination not found")

        returncode = run_tracked(
            self._tracker,
            local_rsync_command(self.settings.home, destination, exclude, self._use_sudo),
        )
        if returncode != 0:
            self._escalator.report(returncode, "local backup via rsync")
            return StepOutcome(label, StepStatus.FAILED, f"rsync exited with code {returncode}")
        return StepOutcome(label, StepStatus.OK)
