"""Encrypted volume lifecycle.

Opens LUKS containers with a key file, checks and mounts them, and
guarantees they are unmounted and locked again. Closing always unmounts
before locking; locking a mapping that is still mounted is never tried.
"""

import logging
import subprocess
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

from dailyctl.core.cleanup import Reporter
from dailyctl.utils.shell import CommandResult, run_command
from dailyctl.volumes.mounts import PROC_MOUNTS, is_mounted

logger = logging.getLogger(__name__)

MAPPER_DIR = Path("/dev/mapper")
MOUNT_ROOT = Path("/mnt")


class VolumeState(str, Enum):
    """How far a volume has been brought up."""

    CLOSED = "closed"
    OPEN = "open"
    MOUNTED = "mounted"


@dataclass(slots=True)
class VolumeHandle:
    """One LUKS mapping and its mountpoint.

    Attributes:
        name: Mapper name.
        device: Encrypted block device.
        mountpoint: Where the cleartext filesystem is mounted.
        state: Current state, updated by the guard.
    """

    name: str
    device: str
    mountpoint: Path
    state: VolumeState = VolumeState.CLOSED

    @property
    def mapper_path(self) -> Path:
        """Cleartext block device created by cryptsetup."""
        return MAPPER_DIR / self.name


class VolumeError(Exception):
    """Base exception for volume errors."""


class VolumeOpenError(VolumeError):
    """Raised when a volume cannot be unlocked or mounted."""


class VolumeCloseError(VolumeError):
    """Raised when a volume cannot be unmounted or locked."""


class VolumeGuard:
    """Opens encrypted volumes and makes sure they get closed.

    Every handle the guard creates is remembered until it is closed, so
    :meth:`close_all` (registered as a cleanup callback) can release
    volumes whatever point a run reached.

    Attributes:
        mount_root: Parent of the deterministic mountpoints.
        mounts_path: Mount table to inspect.
        use_sudo: Prefix privileged commands with sudo.
    """

    def __init__(
        self,
        reporter: Reporter | None = None,
        *,
        mount_root: Path = MOUNT_ROOT,
        mounts_path: Path = PROC_MOUNTS,
        use_sudo: bool = True,
    ) -> None:
        self._reporter = reporter or Reporter()
        self.mount_root = mount_root
        self.mounts_path = mounts_path
        self.use_sudo = use_sudo
        self._handles: dict[str, VolumeHandle] = {}

    @property
    def handles(self) -> tuple[VolumeHandle, ...]:
        """Handles that have not been closed yet."""
        return tuple(self._handles.values())

    def mountpoint_for(self, name: str) -> Path:
        """Mountpoint derived from a mapper name."""
        return self.mount_root / name

    def is_open(self, name: str) -> bool:
        """Whether cryptsetup reports the mapping as active."""
        try:
            result = self._run(["cryptsetup", "status", name])
        except (OSError, subprocess.TimeoutExpired) as e:
            logger.warning("Cannot query mapping %s: %s", name, e)
            return False
        return result.success

    def is_mounted(self, name: str) -> bool:
        """Whether the mapping's mountpoint appears in the mount table."""
        return is_mounted(mountpoint=self.mountpoint_for(name), path=self.mounts_path)

    def open_volume(self, device: str, key_file: Path, name: str) -> VolumeHandle:
        """Unlock, check and mount an encrypted volume.

        The filesystem check is advisory: a failure is reported and the
        mount still goes ahead. A mapping that is already active is
        reported and then used as if this call had unlocked it.

        Args:
            device: Encrypted block device.
            key_file: Key file unlocking the device.
            name: Mapper name; the volume is mounted at mount_root/name.

        Returns:
            Handle in MOUNTED state.

        Raises:
            VolumeOpenError: If unlocking or mounting fails. A volume that
                was unlocked stays tracked so that close_all() locks it.
        """
        handle = self._handles.get(name)
        if handle is None:
            handle = VolumeHandle(name=name, device=device, mountpoint=self.mountpoint_for(name))
            self._handles[name] = handle
        if handle.state == VolumeState.MOUNTED:
            return handle

        if handle.state == VolumeState.CLOSED:
            result = self._run_step(
                ["cryptsetup", "open", f"--key-file={key_file}", device, name],
                f"unlock {name}",
            )
            if not result.success:
                if not self.is_open(name):
                    del self._handles[name]
                    msg = f"Cannot unlock {device} as {name}: {result.stderr.strip()}"
                    raise VolumeOpenError(msg)
                # Left unlocked by an earlier run; use it and lock it at cleanup.
                logger.warning("%s is already unlocked", name)
            handle.state = VolumeState.OPEN

        self._run_step(
            ["fsck", "-a", str(handle.mapper_path)],
            f"running file system check on {handle.mapper_path}",
            timeout=None,
        )

        result = self._run_step(
            ["mount", str(handle.mapper_path), str(handle.mountpoint)],
            f"mount {name}",
        )
        if not result.success:
            msg = f"Cannot mount {handle.mapper_path} at {handle.mountpoint}"
            raise VolumeOpenError(msg)
        handle.state = VolumeState.MOUNTED
        logger.info("%s is mounted at %s", name, handle.mountpoint)
        return handle

    def close_volume(self, volume: VolumeHandle | str) -> None:
        """Unmount if mounted, then lock if open.

        Safe on volumes that were never opened, or are already closed.

        Raises:
            VolumeCloseError: If unmounting or locking fails. When
                unmounting fails the mapping is deliberately left open.
        """
        name = volume if isinstance(volume, str) else volume.name
        handle = self._handles.get(name)

        if self.is_mounted(name):
            result = self._run_step(["umount", str(MAPPER_DIR / name)], f"unmounting {name}")
            if not result.success:
                msg = f"Cannot unmount {name}; leaving it unlocked"
                raise VolumeCloseError(msg)
            if handle is not None:
                handle.state = VolumeState.OPEN

        if self.is_open(name):
            result = self._run_step(["cryptsetup", "close", name], f"locking {name}")
            if not result.success:
                msg = f"Cannot lock {name}"
                raise VolumeCloseError(msg)

        if handle is not None:
            handle.state = VolumeState.CLOSED
        self._handles.pop(name, None)

    def close_all(self, reporter: Reporter) -> None:
        """Close every tracked volume. Cleanup callback.

        A volume that fails to close is reported and the rest are still
        closed.
        """
        for handle in list(self._handles.values()):
            try:
                self.close_volume(handle)
            except VolumeCloseError as e:
                reporter.report(1, str(e))

    @contextmanager
    def opened_volume(self, device: str, key_file: Path, name: str) -> Iterator[VolumeHandle]:
        """Open a volume for the duration of a with block.

        The volume is closed on every exit path, including a failed open.
        """
        try:
            yield self.open_volume(device, key_file, name)
        finally:
            self.close_volume(name)

    def _run(self, args: list[str], timeout: float | None = 60.0) -> CommandResult:
        if self.use_sudo:
            args = ["sudo", *args]
        return run_command(args, timeout=timeout)

    def _run_step(
        self, args: list[str], description: str, timeout: float | None = 60.0
    ) -> CommandResult:
        """Run a command, reporting (not raising) a non-zero exit."""
        try:
            result = self._run(args, timeout=timeout)
        except FileNotFoundError:
            result = CommandResult(stdout="", stderr=f"{args[0]} not found", returncode=127)
        except subprocess.TimeoutExpired:
            result = CommandResult(stdout="", stderr=f"{args[0]} timed out", returncode=124)
        except OSError as e:
            result = CommandResult(stdout="", stderr=str(e), returncode=126)
        if not result.success:
            self._reporter.report(result.returncode, description)
        return result
