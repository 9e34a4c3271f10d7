"""Shell execution utilities.

Provides safe subprocess execution with proper error handling, and a
tracker for long-running children that may need to be stopped from a
signal handler.
"""

import logging
import subprocess
import time
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CommandResult:
    """Result of a shell command execution.

    Attributes:
        stdout: Standard output from the command.
        stderr: Standard error from the command.
        returncode: Exit code of the command.
    """

    stdout: str
    stderr: str
    returncode: int

    @property
    def success(self) -> bool:
        """Check if command executed successfully."""
        return self.returncode == 0


def run_command(
    args: list[str],
    *,
    check: bool = False,
    timeout: float | None = 60.0,
    cwd: str | None = None,
) -> CommandResult:
    """Execute a shell command and return the result.

    Args:
        args: Command and arguments to execute.
        check: If True, raise CalledProcessError on non-zero exit.
        timeout: Maximum time in seconds to wait for command.
        cwd: Working directory for the command. If None, uses current directory.

    Returns:
        CommandResult with stdout, stderr, and returncode.

    Raises:
        subprocess.CalledProcessError: If check=True and command fails.
        subprocess.TimeoutExpired: If command exceeds timeout.
        FileNotFoundError: If command executable is not found.
    """
    result = subprocess.run(
        args,
        capture_output=True,
        text=True,
        check=check,
        timeout=timeout,
        cwd=cwd,
    )
    return CommandResult(
        stdout=result.stdout,
        stderr=result.stderr,
        returncode=result.returncode,
    )


class ProcessTracker:
    """Spawns long-running children and remembers their handles.

    Only processes started through a tracker are ever terminated by it, so
    unrelated invocations of the same tool elsewhere on the system are left
    alone.

    Attributes:
        poll_interval: Seconds between liveness checks while waiting.
        grace_period: Seconds to wait after SIGTERM before SIGKILL.
    """

    def __init__(self, poll_interval: float = 1.0, grace_period: float = 10.0) -> None:
        self.poll_interval = poll_interval
        self.grace_period = grace_period
        self._children: list[subprocess.Popen[bytes]] = []

    @property
    def running(self) -> list[subprocess.Popen[bytes]]:
        """Tracked children that have not exited yet."""
        return [proc for proc in self._children if proc.poll() is None]

    def run(self, args: list[str]) -> int:
        """Start a child with the terminal inherited and wait for it.

        Args:
            args: Command and arguments to execute.

        Returns:
            Exit code of the child.

        Raises:
            FileNotFoundError: If the executable is not found.
            OSError: If the command cannot be executed.
        """
        proc = subprocess.Popen(args)
        self._children.append(proc)
        logger.debug("Started %s as pid %d", args[0], proc.pid)

        try:
            # Timed waits keep the waitpid lock free for a signal handler.
            while True:
                try:
                    return proc.wait(timeout=self.poll_interval)
                except subprocess.TimeoutExpired:
                    continue
        finally:
            if proc.poll() is not None and proc in self._children:
                self._children.remove(proc)

    def terminate_all(self) -> int:
        """Terminate every tracked child and wait for each to exit.

        Children still alive after the grace period are killed.

        Returns:
            Number of children that had to be stopped.
        """
        stopped = 0
        for proc in self.running:
            stopped += 1
            logger.info("Terminating %s (pid %d)", _proc_name(proc), proc.pid)
            proc.terminate()
            if not self._wait_for_exit(proc, self.grace_period):
                logger.warning("Killing %s (pid %d)", _proc_name(proc), proc.pid)
                proc.kill()
                self._wait_for_exit(proc, self.grace_period)
        self._children = [proc for proc in self._children if proc.poll() is None]
        return stopped

    def _wait_for_exit(self, proc: subprocess.Popen[bytes], limit: float) -> bool:
        """Poll until the child exits or ``limit`` seconds pass."""
        deadline = time.monotonic() + limit
        while proc.poll() is None:
            if time.monotonic() >= deadline:
                return False
            logger.info("%s %d is still running", _proc_name(proc), proc.pid)
            time.sleep(min(self.poll_interval, limit))
        return True


def _proc_name(proc: subprocess.Popen[bytes]) -> str:
    args = proc.args
    if isinstance(args, (list, tuple)) and args:
        return str(args[0])
    return str(args)


def run_tracked(tracker: ProcessTracker, args: list[str]) -> int:
    """Run a child through a tracker, mapping launch failures to exit codes.

    Returns:
        The child's exit code, 127 if the executable is missing, or 126 if
        it cannot be started.
    """
    try:
        return tracker.run(args)
    except FileNotFoundError:
        logger.error("%s not found", args[0])
        return 127
    except OSError as e:
        logger.error("Cannot run %s: %s", args[0], e)
        return 126
