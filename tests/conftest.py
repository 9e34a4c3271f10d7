"""Pytest configuration and shared fixtures.

This module contains fixtures used across all test modules.
"""

from pathlib import Path

import pytest
from dailyctl.core.cleanup import Escalator, Reporter
from dailyctl.core.settings import MaintenanceSettings


@pytest.fixture
def home(tmp_path: Path) -> Path:
    """A throwaway home directory."""
    path = tmp_path / "home"
    path.mkdir()
    return path


@pytest.fixture
def data_root(tmp_path: Path) -> Path:
    """A throwaway bulk-data root."""
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def jail(home: Path) -> Path:
    """The sandbox subtree inside the home directory."""
    path = home / "gaol"
    path.mkdir()
    return path


@pytest.fixture
def rclone_config(home: Path) -> Path:
    """An rclone configuration with one encrypted-folder remote."""
    path = home / "testhost-rclone.conf"
    path.write_text("[testhost-mnt-data-archive-std]\ntype = drive\n")
    return path


@pytest.fixture
def mounts_file(tmp_path: Path) -> Path:
    """An empty mount table in /proc/mounts format."""
    path = tmp_path / "mounts"
    path.write_text("proc /proc proc rw,nosuid,nodev,noexec,relatime 0 0\n")
    return path


@pytest.fixture
def settings(home: Path, data_root: Path, jail: Path, rclone_config: Path) -> MaintenanceSettings:
    """Settings pointing every root at temporary directories."""
    return MaintenanceSettings(
        home=home,
        data_root=data_root,
        jail=jail,
        rclone_config=rclone_config,
        retry_wait=0.0,
        max_attempts=3,
    )


@pytest.fixture
def escalator() -> Escalator:
    """A fresh Escalator."""
    return Escalator()


@pytest.fixture
def reporter() -> Reporter:
    """A fresh Reporter."""
    return Reporter()
