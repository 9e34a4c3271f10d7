"""Maintenance session.

A session wraps one invocation of a maintenance command. It takes the
single-instance lock, traps terminating signals, hands out the Escalator
and the cleanup registry, and guarantees that the registry runs exactly
once however the command ends:

- normal completion: cleanup with ``session.exit_code`` (0 by default);
- EscalationError: cleanup with the escalated code;
- trapped signal: the signal handler already ran cleanup with
  TRAPPED_SIGNAL, the session only finishes up;
- anything else: logged, cleanup with UNEXPECTED.

The run is recorded in the history file, and the process then exits with
the cleanup code.
"""

import logging
from types import TracebackType

from dailyctl.core.cleanup import (
    CleanupCallback,
    CleanupRegistry,
    EscalationError,
    Escalator,
    Reporter,
    SignalController,
)
from dailyctl.core.codes import ExitCode
from dailyctl.core.lock import AlreadyRunningError, InstanceLock
from dailyctl.core.paths import get_lock_path
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.core.state import StateManager
from dailyctl.models.history import StepOutcome, StepStatus, create_run_record
from dailyctl.utils.naming import make_stamp

logger = logging.getLogger(__name__)


class MaintenanceSession:
    """Context manager owning cleanup, signals and the instance lock.

    Attributes:
        settings: Maintenance settings for this run.
        command: Command line label recorded in history.
        stamp: Run label.
        escalator: Reporting capability that may stop the run.
        registry: Cleanup registry run when the session ends.
        exit_code: Code used on normal completion.
    """

    def __init__(
        self,
        settings: MaintenanceSettings,
        command: str,
        *,
        stamp: str | None = None,
        state: StateManager | None = None,
        lock: InstanceLock | None = None,
        install_signals: bool = True,
    ) -> None:
        self.settings = settings
        self.command = command
        self.stamp = stamp or make_stamp()
        self.escalator = Escalator()
        self.registry = CleanupRegistry(Reporter())
        self.signals = SignalController(self.registry)
        self.exit_code: int = ExitCode.SUCCESS
        self._install_signals = install_signals
        self._lock = lock if lock is not None else InstanceLock(get_lock_path())
        self._state = state if state is not None else StateManager()
        self._steps: list[StepOutcome] = []

    @property
    def steps(self) -> tuple[StepOutcome, ...]:
        """Step outcomes recorded so far."""
        return tuple(self._steps)

    def register(self, name: str, callback: CleanupCallback) -> None:
        """Register a cleanup callback for this session."""
        self.registry.register(name, callback)

    def record(self, outcome: StepOutcome) -> None:
        """Record the outcome of one step."""
        level = logging.INFO if outcome.status != StepStatus.FAILED else logging.WARNING
        logger.log(level, "%s: %s", outcome.name, outcome.status.value)
        self._steps.append(outcome)

    def __enter__(self) -> "MaintenanceSession":
        try:
            self._lock.acquire()
        except AlreadyRunningError as e:
            logger.error("%s", e)
            raise SystemExit(ExitCode.ALREADY_RUNNING) from e
        if self._install_signals:
            self.signals.install()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if isinstance(exc, SystemExit) and self.registry.finished:
            code = self.registry.exit_code
            self._finish(ExitCode.UNEXPECTED if code is None else code)
            return

        if exc is None:
            code = self.exit_code
        elif isinstance(exc, EscalationError):
            code = exc.code
        elif isinstance(exc, SystemExit) and isinstance(exc.code, int):
            code = exc.code
        else:
            logger.error("unexpected failure: %s", exc, exc_info=exc)
            code = ExitCode.UNEXPECTED

        try:
            self.registry.run_cleanup(code)
        finally:
            self._finish(code)

    def _finish(self, code: int) -> None:
        """Restore signals, record history and release the lock."""
        if self.signals.installed:
            self.signals.restore()
        try:
            self._state.record_run(
                create_run_record(
                    command=self.command,
                    stamp=self.stamp,
                    exit_code=int(code),
                    steps=self._steps,
                )
            )
        except (OSError, RuntimeError) as e:
            logger.warning("Could not record run to history: %s", e)
        finally:
            self._lock.release()
