"""Unit tests for MaintenanceSession."""

import signal
from pathlib import Path

import pytest
from dailyctl.core.cleanup import Reporter
from dailyctl.core.codes import ExitCode
from dailyctl.core.lock import InstanceLock
from dailyctl.core.session import MaintenanceSession
from dailyctl.core.settings import MaintenanceSettings
from dailyctl.core.state import StateManager
from dailyctl.models.history import StepOutcome, StepStatus


@pytest.fixture
def state(tmp_path: Path) -> StateManager:
    """History below tmp_path."""
    return StateManager(state_dir=tmp_path / "state")


@pytest.fixture
def lock(tmp_path: Path) -> InstanceLock:
    """Instance lock below tmp_path."""
    return InstanceLock(tmp_path / "state" / "dailyctl.lock")


def make_session(
    settings: MaintenanceSettings,
    state: StateManager,
    lock: InstanceLock,
    install_signals: bool = False,
) -> MaintenanceSession:
    return MaintenanceSession(
        settings,
        "dailyctl test",
        stamp="20260101-testhost",
        state=state,
        lock=lock,
        install_signals=install_signals,
    )


class TestMaintenanceSession:
    """Tests for MaintenanceSession."""

    def test_normal_exit_runs_cleanup_with_zero(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """A command that completes cleans up and exits 0."""
        calls: list[int] = []
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.register("record", lambda r: calls.append(1))

        assert exc_info.value.code == ExitCode.SUCCESS
        assert calls == [1]
        assert not lock.held

    def test_exit_code_override(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """session.exit_code sets the code for a normal ending."""
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.exit_code = ExitCode.UNSAFE

        assert exc_info.value.code == ExitCode.UNSAFE

    def test_escalation_uses_its_code(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """An escalated failure cleans up and exits with its code."""
        calls: list[int] = []
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.register("record", lambda r: calls.append(1))
                session.escalator.escalate(ExitCode.MISSING_FILE, "checking x", "cannot find x")

        assert exc_info.value.code == ExitCode.MISSING_FILE
        assert calls == [1]

    def test_unexpected_error_exits_unexpected(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """Any other exception still cleans up, with UNEXPECTED."""
        calls: list[int] = []
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.register("record", lambda r: calls.append(1))
                raise KeyError("surprise")

        assert exc_info.value.code == ExitCode.UNEXPECTED
        assert calls == [1]

    def test_signal_cleans_up_once(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """A trapped signal runs cleanup once and exits with TRAPPED_SIGNAL."""
        calls: list[int] = []
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.register("record", lambda r: calls.append(1))
                session.signals.handle(signal.SIGTERM, None)

        assert exc_info.value.code == ExitCode.TRAPPED_SIGNAL
        assert calls == [1]
        assert state.get_history()[0].exit_code == ExitCode.TRAPPED_SIGNAL

    def test_history_recorded(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """Recorded step outcomes end up in the history file."""
        with pytest.raises(SystemExit):
            with make_session(settings, state, lock) as session:
                session.record(StepOutcome("local backup", StepStatus.SKIPPED))
                session.record(StepOutcome("archive x", StepStatus.OK))

        record = state.get_history()[0]
        assert record.command == "dailyctl test"
        assert record.stamp == "20260101-testhost"
        assert record.exit_code == 0
        assert [step.name for step in record.steps] == ["local backup", "archive x"]

    def test_cleanup_run_inside_records_zero(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """A cleanup that already ran with 0 is recorded as 0, not UNEXPECTED."""
        calls: list[int] = []
        with pytest.raises(SystemExit) as exc_info:
            with make_session(settings, state, lock) as session:
                session.register("record", lambda r: calls.append(1))
                session.registry.run_cleanup(ExitCode.SUCCESS)

        assert exc_info.value.code == ExitCode.SUCCESS
        assert calls == [1]
        assert state.get_history()[0].exit_code == ExitCode.SUCCESS
        assert not lock.held

    def test_already_running(
        self, settings: MaintenanceSettings, state: StateManager, tmp_path: Path
    ) -> None:
        """A second session while the lock is held exits with ALREADY_RUNNING."""
        path = tmp_path / "state" / "dailyctl.lock"
        calls: list[int] = []
        with InstanceLock(path):
            session = make_session(settings, state, InstanceLock(path))
            session.register("never", lambda r: calls.append(1))
            with pytest.raises(SystemExit) as exc_info:
                with session:
                    pass

        assert exc_info.value.code == ExitCode.ALREADY_RUNNING
        assert calls == []

    def test_signals_installed_and_restored(
        self, settings: MaintenanceSettings, state: StateManager, lock: InstanceLock
    ) -> None:
        """Signal handlers are active inside the session only."""
        previous = signal.getsignal(signal.SIGTERM)
        seen: list[object] = []

        def capture(reporter: Reporter) -> None:
            seen.append(signal.getsignal(signal.SIGTERM))

        with pytest.raises(SystemExit):
            with make_session(settings, state, lock, install_signals=True) as session:
                session.register("capture", capture)
                assert session.signals.installed

        assert seen == [session.signals.handle]
        assert signal.getsignal(signal.SIGTERM) == previous
