"""Encrypted volumes and the mount table."""

from dailyctl.volumes.luks import (
    VolumeCloseError,
    VolumeError,
    VolumeGuard,
    VolumeHandle,
    VolumeOpenError,
    VolumeState,
)
from dailyctl.volumes.mounts import PROC_MOUNTS, MountEntry, cryfs_source, is_mounted, read_mounts

__all__ = [
    "PROC_MOUNTS",
    "MountEntry",
    "VolumeCloseError",
    "VolumeError",
    "VolumeGuard",
    "VolumeHandle",
    "VolumeOpenError",
    "VolumeState",
    "cryfs_source",
    "is_mounted",
    "read_mounts",
]
