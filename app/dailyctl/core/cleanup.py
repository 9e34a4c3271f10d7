"""Cleanup registry, failure reporting and signal trapping.

Every component that owns an external resource (an unlocked volume, a
mount, a running sync) registers one cleanup callback when it is set up.
The registry runs all of them, in registration order, exactly once per
process: at the natural end of a run, after an escalated failure, or from
the handler of a trapped signal.

Two reporting capabilities exist:

- :class:`Reporter` logs a failed step and lets execution continue. It is
  the only capability a cleanup callback ever receives.
- :class:`Escalator` can additionally stop the run. Escalating raises
  :class:`EscalationError`, which the session turns into a cleanup and an
  exit. Because callbacks never get an Escalator, cleanup cannot recurse
  into itself.
"""

import logging
import signal
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from types import FrameType
from typing import NoReturn

from dailyctl.core.codes import ExitCode

logger = logging.getLogger(__name__)


class EscalationError(Exception):
    """Raised when a failed step must stop the whole run.

    Attributes:
        code: Exit code the process should end with.
        description: The step that failed.
    """

    def __init__(self, code: int, description: str) -> None:
        super().__init__(f"{description} (exit code {code})")
        self.code = code
        self.description = description


class CleanupReentryError(RuntimeError):
    """Raised when cleanup is requested while it is running or already ran."""


class Reporter:
    """Reports failed steps without ever stopping the run."""

    def report(self, returncode: int, description: str) -> int:
        """Log a non-zero return code and carry on.

        Args:
            returncode: Exit status of the failed step.
            description: What the step was doing.

        Returns:
            The return code, unchanged.
        """
        logger.error("%s exited with code %d", description, returncode)
        logger.warning("continuing . . .")
        return returncode

    def setting(self, description: str, value: object) -> None:
        """Log a setting a routine is about to use."""
        logger.info("%s is %s", description, value)


class Escalator(Reporter):
    """Reporter that may also stop the run.

    Only code outside cleanup callbacks holds one of these.
    """

    def escalate(self, code: int, description: str, exit_message: str) -> NoReturn:
        """Log the failure and stop the run.

        Raises:
            EscalationError: Always.
        """
        logger.error("%s exited with code %d", description, code)
        logger.error("%s", exit_message)
        raise EscalationError(code, description)


CleanupCallback = Callable[[Reporter], None]


@dataclass(frozen=True, slots=True)
class CleanupStep:
    """A named cleanup callback."""

    name: str
    callback: CleanupCallback


class RegistryState(str, Enum):
    """Lifecycle of a cleanup registry."""

    PENDING = "pending"
    RUNNING = "running"
    FINISHED = "finished"


class CleanupRegistry:
    """Ordered cleanup callbacks, run exactly once.

    Attributes:
        exit_code: Code the registry ran with, None until it runs.
    """

    def __init__(self, reporter: Reporter | None = None) -> None:
        self._reporter = reporter or Reporter()
        self._steps: list[CleanupStep] = []
        self._state = RegistryState.PENDING
        self.exit_code: int | None = None

    @property
    def steps(self) -> tuple[CleanupStep, ...]:
        """Registered steps in the order they will run."""
        return tuple(self._steps)

    @property
    def running(self) -> bool:
        """Whether cleanup is currently in progress."""
        return self._state == RegistryState.RUNNING

    @property
    def finished(self) -> bool:
        """Whether cleanup has already run to completion."""
        return self._state == RegistryState.FINISHED

    def register(self, name: str, callback: CleanupCallback) -> None:
        """Append a cleanup callback.

        Raises:
            ValueError: If the name is empty or already registered.
            CleanupReentryError: If cleanup has already started.
        """
        if not name:
            msg = "Cleanup step name cannot be empty"
            raise ValueError(msg)
        if any(step.name == name for step in self._steps):
            msg = f"Cleanup step already registered: {name}"
            raise ValueError(msg)
        if self._state != RegistryState.PENDING:
            msg = f"Cannot register {name} once cleanup has started"
            raise CleanupReentryError(msg)
        self._steps.append(CleanupStep(name=name, callback=callback))

    def run(self, exit_code: int) -> int:
        """Invoke every callback in registration order.

        A failing callback is logged and the remaining ones still run.

        Returns:
            Number of callbacks that failed.

        Raises:
            CleanupReentryError: If cleanup is running or already ran.
        """
        if self._state != RegistryState.PENDING:
            msg = f"Cleanup is already {self._state.value}"
            raise CleanupReentryError(msg)

        self._state = RegistryState.RUNNING
        self.exit_code = exit_code
        logger.info("***")
        logger.info("exiting cleanly with code %d. . .", exit_code)

        failures = 0
        try:
            for step in self._steps:
                logger.debug("cleanup step %s", step.name)
                try:
                    step.callback(self._reporter)
                except Exception:
                    failures += 1
                    logger.exception("cleanup step %s failed", step.name)
        finally:
            self._state = RegistryState.FINISHED

        logger.info(". . . all done with code %d", exit_code)
        return failures

    def run_cleanup(self, exit_code: int) -> NoReturn:
        """Run every callback, then terminate the process with ``exit_code``.

        Raises:
            SystemExit: Always, carrying ``exit_code``.
            CleanupReentryError: If cleanup is running or already ran.
        """
        self.run(exit_code)
        raise SystemExit(exit_code)


# Hang-up, interrupt, quit, abort and terminate
TRAPPED_SIGNALS: tuple[signal.Signals, ...] = (
    signal.SIGHUP,
    signal.SIGINT,
    signal.SIGQUIT,
    signal.SIGABRT,
    signal.SIGTERM,
)


class SignalController:
    """Routes terminating signals to the cleanup registry.

    A trapped signal runs the full cleanup and exits with
    ``ExitCode.TRAPPED_SIGNAL``. Signals arriving while cleanup runs, or
    after it finished, are logged and otherwise ignored.
    """

    def __init__(
        self,
        registry: CleanupRegistry,
        signals: tuple[signal.Signals, ...] = TRAPPED_SIGNALS,
    ) -> None:
        self._registry = registry
        self._signals = signals
        self._previous: dict[signal.Signals, object] = {}

    @property
    def installed(self) -> bool:
        """Whether handlers are currently installed."""
        return bool(self._previous)

    def install(self) -> None:
        """Install the handler for every trapped signal.

        Must be called from the main thread.
        """
        for sig in self._signals:
            self._previous[sig] = signal.signal(sig, self.handle)

    def restore(self) -> None:
        """Put back the handlers that were active before install()."""
        for sig, previous in self._previous.items():
            signal.signal(sig, previous)  # type: ignore[arg-type]
        self._previous.clear()

    def handle(self, signum: int, frame: FrameType | None) -> None:
        """Signal handler: clean up and exit with TRAPPED_SIGNAL."""
        name = signal.Signals(signum).name
        if self._registry.running or self._registry.finished:
            logger.warning("ignoring %s, cleanup already under way", name)
            return
        logger.error("trapped signal %s during maintenance", name)
        self._registry.run_cleanup(ExitCode.TRAPPED_SIGNAL)
