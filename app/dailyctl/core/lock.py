"""Single-instance lock.

Two overlapping runs could unmount or sync the same encrypted folder at
the same time, so every session holds an advisory ``flock`` on a lock
file in the state directory. The lock disappears with the process, so a
crashed run never leaves a stale lock behind.
"""

import fcntl
import logging
import os
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


class AlreadyRunningError(Exception):
    """Raised when another process holds the instance lock."""


class InstanceLock:
    """Exclusive, non-blocking advisory lock on a file.

    Attributes:
        path: Lock file location.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._fd: int | None = None

    @property
    def held(self) -> bool:
        """Whether this object currently holds the lock."""
        return self._fd is not None

    def acquire(self) -> None:
        """Take the lock, writing our pid into the lock file.

        Raises:
            AlreadyRunningError: If another process holds the lock.
            OSError: If the lock file cannot be created.
        """
        if self._fd is not None:
            return

        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o600)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as e:
            os.close(fd)
            msg = f"Another instance holds {self.path}"
            raise AlreadyRunningError(msg) from e

        os.ftruncate(fd, 0)
        os.write(fd, f"{os.getpid()}\n".encode())
        self._fd = fd
        logger.debug("Acquired instance lock %s", self.path)

    def release(self) -> None:
        """Drop the lock. Safe to call when not held."""
        if self._fd is None:
            return
        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None
        logger.debug("Released instance lock %s", self.path)

    def __enter__(self) -> "InstanceLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.release()
