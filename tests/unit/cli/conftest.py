"""Fixtures shared by the CLI tests."""

from pathlib import Path

import pytest
from dailyctl.core.settings import MaintenanceSettings, save_settings


@pytest.fixture(autouse=True)
def xdg_dirs(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Keep settings, history and the lock file below tmp_path."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_STATE_HOME", str(tmp_path / "xdg-state"))
    return tmp_path


@pytest.fixture
def settings_file(settings: MaintenanceSettings, tmp_path: Path) -> Path:
    """The temporary settings written to a TOML file."""
    return save_settings(settings, tmp_path / "settings.toml")
