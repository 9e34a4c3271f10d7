"""Unit tests for the archive commands."""

from pathlib import Path
from unittest.mock import patch

from dailyctl.archive.pipeline import ArchiveError, ArchiveResult, ArchiveState
from dailyctl.cli.main import app
from dailyctl.core.codes import ExitCode
from dailyctl.core.state import StateManager
from typer.testing import CliRunner

runner = CliRunner()

REMOTE = "testhost-mnt-data-archive-std"


def make_result(data_root: Path, error: ArchiveError | None = None) -> ArchiveResult:
    state = ArchiveState.ABORTED
    if error in (None, ArchiveError.TRANSFER_FAILED):
        state = ArchiveState.DONE
    return ArchiveResult(
        clear_dir=data_root / "clear",
        encrypted_dir=data_root / "archive",
        remote=REMOTE,
        state=state,
        error=error,
        states=(ArchiveState.IDLE, ArchiveState.VERIFYING, state),
    )


class TestArchiveRun:
    """Tests for dailyctl archive run."""

    def test_success(self, settings_file: Path, data_root: Path) -> None:
        """A synced archive exits 0 and is recorded."""
        with patch("dailyctl.cli.commands.archive.EncryptedArchivePipeline") as mock_pipeline:
            mock_pipeline.return_value.run_archive.return_value = make_result(data_root)

            result = runner.invoke(
                app,
                [
                    "-s",
                    str(settings_file),
                    "archive",
                    "run",
                    str(data_root / "clear"),
                    str(data_root / "archive"),
                    REMOTE,
                ],
            )

        assert result.exit_code == 0
        mock_pipeline.return_value.cleanup.assert_called_once()
        record = StateManager().get_history()[0]
        assert record.command.startswith("dailyctl archive run")
        assert record.steps[0].name == f"archive {data_root / 'archive'}"

    def test_missing_mount(self, settings_file: Path, data_root: Path) -> None:
        """An archive that is not mounted exits with MISSING_MOUNT."""
        with patch("dailyctl.cli.commands.archive.EncryptedArchivePipeline") as mock_pipeline:
            mock_pipeline.return_value.run_archive.return_value = make_result(
                data_root, ArchiveError.MISSING_MOUNT
            )

            result = runner.invoke(
                app,
                [
                    "-s",
                    str(settings_file),
                    "archive",
                    "run",
                    str(data_root / "clear"),
                    str(data_root / "archive"),
                    REMOTE,
                ],
            )

        assert result.exit_code == ExitCode.MISSING_MOUNT
        assert StateManager().get_history()[0].exit_code == ExitCode.MISSING_MOUNT

    def test_unknown_remote(self, settings_file: Path, data_root: Path) -> None:
        """A remote missing from the rclone config escalates."""
        result = runner.invoke(
            app,
            [
                "-s",
                str(settings_file),
                "archive",
                "run",
                str(data_root / "clear"),
                str(data_root / "archive"),
                "nowhere",
            ],
        )

        assert result.exit_code == ExitCode.BAD_CONFIGURATION


class TestArchiveMonth:
    """Tests for dailyctl archive month."""

    def test_nothing_to_offload(self, settings_file: Path) -> None:
        """A month without a folder is skipped."""
        result = runner.invoke(app, ["-s", str(settings_file), "archive", "month", "202601"])

        assert result.exit_code == 0
        record = StateManager().get_history()[0]
        assert record.steps[0].detail == "no offload folder"

    def test_bad_month(self, settings_file: Path) -> None:
        """The month must be YYYYMM."""
        result = runner.invoke(app, ["-s", str(settings_file), "archive", "month", "2026"])

        assert result.exit_code != 0
        assert StateManager().get_history() == []

    def test_month_out_of_range(self, settings_file: Path) -> None:
        """A thirteenth month is refused before a session starts."""
        result = runner.invoke(app, ["-s", str(settings_file), "archive", "month", "202413"])

        assert result.exit_code != 0
        assert StateManager().get_history() == []
