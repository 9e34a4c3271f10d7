"""Local and remote rsync backups."""

from dailyctl.backup.local import LocalBackup, local_rsync_command
from dailyctl.backup.remote import RemoteBackup

__all__ = ["LocalBackup", "RemoteBackup", "local_rsync_command"]
