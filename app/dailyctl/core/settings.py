"""Maintenance settings.

This module provides the immutable settings model shared by every
maintenance routine, and the I/O functions to read and write it.

Settings are stored in ~/.config/dailyctl/settings.toml. Every key is
optional; a missing file means "use the defaults". The model is built
once per process and then passed explicitly to each component.
"""

import os
import re
import tomllib
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Annotated, Any

import tomli_w
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dailyctl.core.paths import get_hostname, get_rclone_config_path, get_settings_path

# Folders with keys, certificates and passwords
DEFAULT_SECRET_FOLDERS: tuple[str, ...] = (
    ".ssh",
    ".gnupg",
    ".cert",
    ".pki",
    ".password-store",
)

# Files containing keys, certificates and passwords
DEFAULT_SECRET_FILES: tuple[str, ...] = (
    "*.asc",
    "*.key",
    "*.pem",
    "id_rsa*",
    "id_dsa*",
    "id_ed25519*",
)

# Not secret, but best kept out of cloud storage
DEFAULT_SENSITIVE_FOLDERS: tuple[str, ...] = (
    ".git",
    ".stfolder",
    ".stversions",
    ".local",
)

_MONTH_RE = re.compile(r"\d{4}(0[1-9]|1[0-2])")


def validate_month(month: str) -> str:
    """Check that a month uses the YYYYMM form of the offload folders.

    Raises:
        ValueError: If the month is malformed or out of range.
    """
    if not _MONTH_RE.fullmatch(month):
        msg = f"month must be YYYYMM, got {month!r}"
        raise ValueError(msg)
    return month


class BackupDisk(BaseModel):
    """An encrypted backup disk unlocked for the local backup.

    Attributes:
        name: Mapper name, also used for the mount point /mnt/<name>.
        device: Block device path, usually under /dev/disk/by-uuid/.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: Annotated[str, Field(min_length=1, pattern=r"^[A-Za-z0-9_.-]+$")]
    device: Annotated[str, Field(min_length=1)]


class ArchiveSet(BaseModel):
    """A cleartext view, its encrypted backing folder and the remote it syncs to."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    clear: Path
    encrypted: Path
    remote: Annotated[str, Field(min_length=1)]


class MaintenanceSettings(BaseModel):
    """Immutable settings for the maintenance routines.

    Attributes:
        secret_folders: Directory names always removed from staging trees.
        secret_files: Filename globs always removed from staging trees.
        sensitive_folders: Directory names kept out of cloud sharing.
        home: Home directory; never a scrub target itself.
        data_root: Bulk-data root; never a scrub target itself, but its
            subtrees are.
        jail: Sandbox subtree where scrubbing is allowed.
        retry_wait: Seconds to sleep between polls.
        max_attempts: Upper bound on polls for each wait loop.
        max_parallel_transfers: Simultaneous file transfers within one sync.
        rclone_config: rclone configuration file (None = ~/<host>-rclone.conf).
        shared_staging: Root where shared trees are staged for cloud upload.
        backup_key_file: Key file unlocking the backup disks.
        backup_disks: Encrypted disks receiving the local backup.
        archive_sets: Archives synced on every run (empty = the default set
            under data_root).
        extra_months: Earlier YYYYMM sets still waiting to be offloaded.
        remote_backup: Destination (rsync syntax) for remote backups.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    secret_folders: tuple[str, ...] = DEFAULT_SECRET_FOLDERS
    secret_files: tuple[str, ...] = DEFAULT_SECRET_FILES
    sensitive_folders: tuple[str, ...] = DEFAULT_SENSITIVE_FOLDERS
    home: Path = Field(default_factory=Path.home)
    data_root: Path = Path("/mnt/data")
    jail: Path = Field(default_factory=lambda: Path.home() / "gaol")
    retry_wait: Annotated[float, Field(ge=0.0, le=600.0)] = 5.0
    max_attempts: Annotated[int, Field(ge=1, le=10_000)] = 10
    max_parallel_transfers: Annotated[int, Field(ge=1, le=256)] = 32
    rclone_config: Path | None = None
    shared_staging: Path | None = None
    backup_key_file: Path | None = None
    backup_disks: tuple[BackupDisk, ...] = ()
    archive_sets: tuple[ArchiveSet, ...] = ()
    extra_months: tuple[str, ...] = ()
    remote_backup: str | None = None

    @field_validator("secret_folders", "sensitive_folders")
    @classmethod
    def validate_folder_names(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Folder names are plain base names, never paths."""
        for name in v:
            if not name or name in (".", "..") or "/" in name:
                msg = f"invalid folder name {name!r}"
                raise ValueError(msg)
        return v

    @field_validator("secret_files")
    @classmethod
    def validate_file_globs(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """File globs match base names only."""
        for pattern in v:
            if not pattern or "/" in pattern:
                msg = f"invalid file pattern {pattern!r}"
                raise ValueError(msg)
        return v

    @field_validator("extra_months")
    @classmethod
    def validate_months(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        """Months use the YYYYMM form of the offload folders."""
        for month in v:
            validate_month(month)
        return v

    @property
    def protected_roots(self) -> tuple[Path, ...]:
        """Paths that are never scrubbed as a whole."""
        return (self.home, self.data_root)

    @property
    def allowed_roots(self) -> tuple[Path, ...]:
        """Paths under which scrubbing is permitted."""
        return (self.jail, self.data_root)

    @property
    def effective_rclone_config(self) -> Path:
        """The rclone configuration actually used for transfers."""
        if self.rclone_config is not None:
            return self.rclone_config
        return get_rclone_config_path()

    @property
    def effective_archive_sets(self) -> tuple[ArchiveSet, ...]:
        """Configured archive sets, or the general set under data_root."""
        if self.archive_sets:
            return self.archive_sets
        return (
            ArchiveSet(
                clear=self.data_root / "clear",
                encrypted=self.data_root / "archive",
                remote=f"{get_hostname()}-mnt-data-archive-std",
            ),
        )

    def monthly_archive_set(self, month: str) -> ArchiveSet:
        """Build the offload archive set for a YYYYMM month folder."""
        month_root = self.data_root / month
        return ArchiveSet(
            clear=month_root / "clear",
            encrypted=month_root / "offload",
            remote=f"{get_hostname()}-mnt-data-{month}-offload-gda",
        )


class SettingsError(Exception):
    """Base exception for settings errors."""


class SettingsNotFoundError(SettingsError):
    """Raised when the settings file is not found."""


class SettingsParseError(SettingsError):
    """Raised when the settings file cannot be parsed."""


def load_settings(path: Path | None = None) -> MaintenanceSettings:
    """Load settings from a TOML file.

    Args:
        path: Path to the settings file. If None, uses the default path.

    Returns:
        Validated MaintenanceSettings object.

    Raises:
        SettingsNotFoundError: If the settings file doesn't exist.
        SettingsParseError: If the TOML syntax is invalid.
        SettingsError: If the content doesn't match the schema.
    """
    settings_path = path or get_settings_path()

    if not settings_path.exists():
        raise SettingsNotFoundError(f"Settings not found: {settings_path}")

    try:
        with open(settings_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise SettingsParseError(f"Invalid TOML syntax: {e}") from e
    except OSError as e:
        raise SettingsError(f"Failed to read settings: {e}") from e

    try:
        return MaintenanceSettings.model_validate(data)
    except (ValueError, ValidationError) as e:
        raise SettingsError(f"Invalid settings content: {e}") from e


def get_settings(path: Path | None = None) -> MaintenanceSettings:
    """Load settings, falling back to defaults when no file exists.

    Raises:
        SettingsError: If the file exists but is invalid.
    """
    try:
        return load_settings(path)
    except SettingsNotFoundError:
        return MaintenanceSettings()


def save_settings(settings: MaintenanceSettings, path: Path | None = None) -> Path:
    """Save settings to a TOML file.

    The file is written atomically by first writing to a temporary file
    and then using os.replace() for atomic rename.

    Args:
        settings: The settings to save.
        path: Path to save to. If None, uses the default settings path.

    Returns:
        Path where the settings were saved.

    Raises:
        SettingsError: If the file cannot be written.
    """
    settings_path = path or get_settings_path()
    settings_path.parent.mkdir(parents=True, exist_ok=True)

    data = _settings_to_dict(settings)

    tmp_path: Path | None = None
    try:
        with NamedTemporaryFile(
            mode="wb",
            dir=settings_path.parent,
            delete=False,
            suffix=".tmp",
        ) as f:
            tmp_path = Path(f.name)
            tomli_w.dump(data, f)
        os.replace(str(tmp_path), str(settings_path))
    except OSError as e:
        if tmp_path is not None and tmp_path.exists():
            tmp_path.unlink()
        raise SettingsError(f"Failed to write settings: {e}") from e

    return settings_path


def _settings_to_dict(settings: MaintenanceSettings) -> dict[str, Any]:
    """Convert settings to a dictionary for TOML serialization.

    TOML has no null, so unset optional values are left out.
    """
    data = settings.model_dump(mode="json", exclude_none=True)
    return {key: value for key, value in data.items() if value != []}
