"""XDG-compliant path management for dailyctl.

This module provides standardized paths following the XDG Base Directory
Specification for configuration and state storage, plus the host-derived
locations the maintenance routines read from the home directory.

XDG defaults:
- Config: ~/.config/dailyctl/
- State: ~/.local/state/dailyctl/
"""

import os
import socket
from pathlib import Path

# Application identifier for directory naming
APP_NAME = "dailyctl"


def _get_xdg_dir(env_var: str, default_subdir: str) -> Path:
    """Get XDG directory respecting environment variable override.

    Args:
        env_var: XDG environment variable name (e.g., "XDG_CONFIG_HOME").
        default_subdir: Default subdirectory under home (e.g., ".config").

    Returns:
        Path to the application-specific directory.
    """
    base = os.environ.get(env_var)
    if base:
        return Path(base) / APP_NAME
    return Path.home() / default_subdir / APP_NAME


def get_config_dir() -> Path:
    """Get the configuration directory path.

    Returns:
        Path to ~/.config/dailyctl/ (or XDG_CONFIG_HOME/dailyctl/).
    """
    return _get_xdg_dir("XDG_CONFIG_HOME", ".config")


def get_state_dir() -> Path:
    """Get the state directory path.

    State data includes the run history and the instance lock file.

    Returns:
        Path to ~/.local/state/dailyctl/ (or XDG_STATE_HOME/dailyctl/).
    """
    return _get_xdg_dir("XDG_STATE_HOME", ".local/state")


def get_settings_path() -> Path:
    """Get the settings file path.

    Returns:
        Path to ~/.config/dailyctl/settings.toml.
    """
    return get_config_dir() / "settings.toml"


def get_history_path() -> Path:
    """Get the history file path.

    Returns:
        Path to ~/.local/state/dailyctl/history.jsonl.
    """
    return get_state_dir() / "history.jsonl"


def get_lock_path() -> Path:
    """Get the single-instance lock file path.

    Returns:
        Path to ~/.local/state/dailyctl/dailyctl.lock.
    """
    return get_state_dir() / "dailyctl.lock"


def get_hostname() -> str:
    """Get the short host name used to label files and remotes."""
    return socket.gethostname().split(".")[0]


def get_rclone_config_path() -> Path:
    """Get the host-specific rclone configuration path.

    rclone does not use its default configuration here; the more prominent
    per-host file in the home directory is read instead.

    Returns:
        Path to ~/<hostname>-rclone.conf.
    """
    return Path.home() / f"{get_hostname()}-rclone.conf"


def _ensure_dir(path: Path, name: str) -> Path:
    """Create directory if it doesn't exist.

    Args:
        path: Directory path to create.
        name: Human-readable name for error messages.

    Returns:
        The created/existing directory path.

    Raises:
        RuntimeError: If directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except PermissionError as e:
        msg = f"Cannot create {name} directory {path}: Permission denied"
        raise RuntimeError(msg) from e
    except OSError as e:
        msg = f"Cannot create {name} directory {path}: {e}"
        raise RuntimeError(msg) from e
    return path


def ensure_config_dir() -> Path:
    """Create the configuration directory if it doesn't exist.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    return _ensure_dir(get_config_dir(), "config")


def ensure_state_dir() -> Path:
    """Create the state directory if it doesn't exist.

    Raises:
        RuntimeError: If the directory cannot be created.
    """
    return _ensure_dir(get_state_dir(), "state")
