"""Encrypted archive to object storage.

An archive is a CryFS folder: ``encrypted_dir`` holds the ciphertext and
is mounted in cleartext at ``clear_dir``. One archive run moves through
these states, each starting only after the previous one succeeded::

    IDLE -> VERIFYING -> SCRUBBING -> UNMOUNTING -> WAITING_DRAIN
         -> TRANSFERRING -> DONE

Any state may end in ABORTED instead. The cleartext view must be mounted
when the run starts: it is scrubbed and listed while still readable, and
only then unmounted and synced in encrypted form with rclone.
"""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dailyctl.archive.manifest import manifest_path, write_manifest
from dailyctl.core.checks import check_contains
from dailyctl.core.cleanup import Escalator, Reporter
from dailyctl.core.codes import ExitCode
from dailyctl.core.settings import ArchiveSet, MaintenanceSettings
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.safety.classifier import resolve_path
from dailyctl.safety.scrubber import ScrubStatus, SensitiveScrubber
from dailyctl.utils.naming import make_stamp
from dailyctl.utils.shell import CommandResult, ProcessTracker, run_command, run_tracked
from dailyctl.volumes.mounts import PROC_MOUNTS, cryfs_source, is_mounted

logger = logging.getLogger(__name__)

# CryFS keeps its own configuration next to the ciphertext
CRYFS_CONFIG = "cryfs.config"


class ArchiveState(str, Enum):
    """States of one archive run."""

    IDLE = "idle"
    VERIFYING = "verifying"
    SCRUBBING = "scrubbing"
    UNMOUNTING = "unmounting"
    WAITING_DRAIN = "waiting_drain"
    TRANSFERRING = "transferring"
    DONE = "done"
    ABORTED = "aborted"


class ArchiveError(str, Enum):
    """Why an archive run did not fully succeed."""

    MISSING_FOLDER = "missing_folder"
    MISSING_MOUNT = "missing_mount"
    UNSAFE = "unsafe"
    SCRUB_FAILED = "scrub_failed"
    DRAIN_TIMEOUT = "drain_timeout"
    TRANSFER_FAILED = "transfer_failed"

    @property
    def exit_code(self) -> ExitCode:
        """Process exit code matching this error."""
        return _ERROR_CODES[self]


_ERROR_CODES: dict[ArchiveError, ExitCode] = {
    ArchiveError.MISSING_FOLDER: ExitCode.MISSING_FOLDER,
    ArchiveError.MISSING_MOUNT: ExitCode.MISSING_MOUNT,
    ArchiveError.UNSAFE: ExitCode.UNSAFE,
    ArchiveError.SCRUB_FAILED: ExitCode.UNSAFE,
    ArchiveError.DRAIN_TIMEOUT: ExitCode.DRAIN_TIMEOUT,
    ArchiveError.TRANSFER_FAILED: ExitCode.NETWORK_ERROR,
}


@dataclass(frozen=True, slots=True)
class ArchiveResult:
    """Outcome of one archive run.

    Attributes:
        clear_dir: Resolved cleartext mountpoint.
        encrypted_dir: Resolved encrypted folder.
        remote: rclone remote name.
        state: Final state, DONE or ABORTED.
        error: What went wrong, None on full success.
        states: Every state entered, in order.
        manifest: Manifest file written, if any.
        transfer_returncode: rclone exit code, None if no transfer ran.
    """

    clear_dir: Path
    encrypted_dir: Path
    remote: str
    state: ArchiveState
    error: ArchiveError | None = None
    states: tuple[ArchiveState, ...] = ()
    manifest: Path | None = None
    transfer_returncode: int | None = None

    @property
    def success(self) -> bool:
        """Whether the archive was scrubbed, unmounted and synced."""
        return self.state == ArchiveState.DONE and self.error is None

    @property
    def exit_code(self) -> ExitCode:
        """Process exit code for this outcome."""
        if self.error is None:
            return ExitCode.SUCCESS
        return self.error.exit_code

    def outcome(self) -> StepOutcome:
        """Summary of this run for the run history."""
        name = f"archive {self.encrypted_dir}"
        if self.error is None:
            return StepOutcome(name, StepStatus.OK)
        if self.state == ArchiveState.DONE:
            return StepOutcome(name, StepStatus.FAILED, self.error.value)
        return StepOutcome(name, StepStatus.ABORTED, self.error.value)


class _Run:
    """Mutable bookkeeping for one run_archive call."""

    def __init__(self, clear_dir: Path, encrypted_dir: Path, remote: str) -> None:
        self.clear_dir = clear_dir
        self.encrypted_dir = encrypted_dir
        self.remote = remote
        self.states: list[ArchiveState] = [ArchiveState.IDLE]
        self.manifest: Path | None = None
        self.transfer_returncode: int | None = None

    def enter(self, state: ArchiveState) -> None:
        logger.debug("archive %s: %s", self.encrypted_dir, state.value)
        self.states.append(state)

    def finish(self, state: ArchiveState, error: ArchiveError | None = None) -> ArchiveResult:
        self.enter(state)
        return ArchiveResult(
            clear_dir=self.clear_dir,
            encrypted_dir=self.encrypted_dir,
            remote=self.remote,
            state=state,
            error=error,
            states=tuple(self.states),
            manifest=self.manifest,
            transfer_returncode=self.transfer_returncode,
        )


class EncryptedArchivePipeline:
    """Scrubs, unmounts and syncs encrypted archives.

    Runs are strictly sequential. rclone children are started through a
    ProcessTracker so that :meth:`cleanup` stops only the transfers this
    pipeline started.

    Attributes:
        settings: Maintenance settings.
        stamp: Run label used in manifest names.
    """

    def __init__(
        self,
        settings: MaintenanceSettings,
        escalator: Escalator,
        *,
        scrubber: SensitiveScrubber | None = None,
        tracker: ProcessTracker | None = None,
        mounts_path: Path = PROC_MOUNTS,
        stamp: str | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.stamp = stamp or make_stamp()
        self._escalator = escalator
        self._scrubber = scrubber or SensitiveScrubber.from_settings(settings, reporter=escalator)
        self._tracker = tracker or ProcessTracker()
        self._mounts_path = mounts_path
        self._sleep = sleep

    def cleanup(self, reporter: Reporter) -> None:
        """Stop any rclone transfer still running. Cleanup callback."""
        stopped = self._tracker.terminate_all()
        if stopped:
            reporter.report(stopped, "kill the rclone processes")

    def run_archive(
        self, clear_dir: Path | str, encrypted_dir: Path | str, remote: str
    ) -> ArchiveResult:
        """Archive one encrypted folder to a remote.

        Args:
            clear_dir: Cleartext mountpoint of the archive.
            encrypted_dir: Encrypted folder backing it.
            remote: rclone remote name, must appear in the rclone config.

        Returns:
            ArchiveResult describing how far the run got.

        Raises:
            EscalationError: If the rclone config is missing or does not
                name the remote, or if unmounting fails.
        """
        logger.info("run_archive")
        run = _Run(resolve_path(clear_dir), resolve_path(encrypted_dir), remote)
        conf = self.settings.effective_rclone_config

        self._escalator.setting("cleartext to archive", run.clear_dir)
        self._escalator.setting("folder to archive", run.encrypted_dir)
        self._escalator.setting("remote", remote)
        self._escalator.setting("remote configuration", conf)

        run.enter(ArchiveState.VERIFYING)
        check_contains(self._escalator, conf, remote)

        for folder in (run.clear_dir, run.encrypted_dir):
            if not folder.is_dir():
                logger.error("cannot find %s", folder)
                return run.finish(ArchiveState.ABORTED, ArchiveError.MISSING_FOLDER)

        source = cryfs_source(run.encrypted_dir)
        if not self._mapping_mounted(run):
            logger.error("%s not mounted, cannot check security", run.encrypted_dir)
            return run.finish(ArchiveState.ABORTED, ArchiveError.MISSING_MOUNT)

        run.enter(ArchiveState.SCRUBBING)
        scrubbed = self._scrubber.scrub(run.clear_dir)
        if not scrubbed.success:
            logger.error("failed to remove sensitive data")
            if scrubbed.status == ScrubStatus.UNSAFE:
                return run.finish(ArchiveState.ABORTED, ArchiveError.UNSAFE)
            return run.finish(ArchiveState.ABORTED, ArchiveError.SCRUB_FAILED)

        target = manifest_path(self.settings.home, self.stamp, run.encrypted_dir)
        try:
            run.manifest = write_manifest(target, f"{source} {run.clear_dir}", run.clear_dir)
        except OSError as e:
            logger.error("Cannot write manifest %s: %s", target, e)
            self._escalator.report(1, "save the tree of archived folders")

        run.enter(ArchiveState.UNMOUNTING)
        unmounted = self._unmount(run.clear_dir)
        if not unmounted.success:
            self._escalator.escalate(
                unmounted.returncode,
                "unmounting encrypted archive",
                "no sync if archive is mounted",
            )

        run.enter(ArchiveState.WAITING_DRAIN)
        if not self._wait_until(
            lambda: not self._mapping_mounted(run), f"{run.encrypted_dir} is mounted"
        ):
            return run.finish(ArchiveState.ABORTED, ArchiveError.DRAIN_TIMEOUT)
        if not self._wait_until(lambda: _is_empty(run.clear_dir), f"{run.clear_dir} is not empty"):
            return run.finish(ArchiveState.ABORTED, ArchiveError.DRAIN_TIMEOUT)

        run.enter(ArchiveState.TRANSFERRING)
        run.transfer_returncode = self._transfer(run.encrypted_dir, remote, conf)
        if run.transfer_returncode != 0:
            self._escalator.report(run.transfer_returncode, "sync archive to remote")
            return run.finish(ArchiveState.DONE, ArchiveError.TRANSFER_FAILED)
        return run.finish(ArchiveState.DONE)

    def run_archive_set(self, archive_set: ArchiveSet) -> ArchiveResult:
        """Archive one configured set."""
        return self.run_archive(archive_set.clear, archive_set.encrypted, archive_set.remote)

    def run_monthly_archive(self, month: str) -> ArchiveResult | None:
        """Archive the offload set of a YYYYMM month, if its folder exists.

        Returns:
            The archive result, or None when there is nothing to offload.
        """
        archive_set = self.settings.monthly_archive_set(month)
        if not (self.settings.data_root / month).is_dir():
            logger.info("no offload folder for %s", month)
            return None
        return self.run_archive_set(archive_set)

    def transfer_command(self, encrypted_dir: Path, remote: str, conf: Path) -> list[str]:
        """rclone arguments syncing an encrypted folder to its remote."""
        return [
            "rclone",
            "sync",
            "--config",
            str(conf),
            "--progress",
            "--transfers",
            str(self.settings.max_parallel_transfers),
            "--delete-excluded",
            "--exclude",
            CRYFS_CONFIG,
            f"{encrypted_dir}/",
            f"{remote}:",
        ]

    def _mapping_mounted(self, run: _Run) -> bool:
        return is_mounted(
            source=cryfs_source(run.encrypted_dir),
            mountpoint=run.clear_dir,
            path=self._mounts_path,
        )

    def _unmount(self, clear_dir: Path) -> CommandResult:
        try:
            return run_command(["cryfs-unmount", str(clear_dir)], timeout=None)
        except FileNotFoundError:
            return CommandResult(stdout="", stderr="cryfs-unmount not found", returncode=127)
        except OSError as e:
            return CommandResult(stdout="", stderr=str(e), returncode=126)

    def _wait_until(self, condition: Callable[[], bool], waiting_message: str) -> bool:
        """Poll ``condition`` every retry_wait seconds, at most max_attempts times.

        Returns:
            True once the condition holds, False if the attempts run out.
        """
        for _attempt in range(self.settings.max_attempts):
            if condition():
                return True
            logger.info("%s", waiting_message)
            self._sleep(self.settings.retry_wait)
        if condition():
            return True
        logger.error(
            "gave up after %d attempts: %s", self.settings.max_attempts, waiting_message
        )
        return False

    def _transfer(self, encrypted_dir: Path, remote: str, conf: Path) -> int:
        return run_tracked(self._tracker, self.transfer_command(encrypted_dir, remote, conf))


def _is_empty(directory: Path) -> bool:
    """Whether a directory has no entries. A missing directory counts as empty."""
    try:
        return not any(directory.iterdir())
    except FileNotFoundError:
        return True
    except OSError as e:
        logger.warning("Cannot list %s: %s", directory, e)
        return False
