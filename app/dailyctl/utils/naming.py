"""Stamps and names derived from dates, hosts and paths."""

import re
from datetime import datetime

from dailyctl.core.paths import get_hostname

_WHITESPACE_RE = re.compile(r"\s")


def make_stamp(now: datetime | None = None, hostname: str | None = None) -> str:
    """Build the label used for messages and files of one run.

    Returns:
        ``YYYYMMDD-<hostname>``, e.g. ``20240815-clovis``.
    """
    now = now or datetime.now()
    return f"{now:%Y%m%d}-{hostname or get_hostname()}"


def current_month(now: datetime | None = None) -> str:
    """Year and month (``YYYYMM``) naming the folder to offload."""
    return f"{(now or datetime.now()):%Y%m}"


def path_as_name(path: str) -> str:
    """Convert a path to a string usable as a file name.

    The leading slash is dropped, remaining slashes become ``-`` and
    whitespace becomes ``_``.

    Raises:
        ValueError: If path is empty.
    """
    if not path:
        msg = "Path to convert to a name cannot be empty"
        raise ValueError(msg)
    name = path[1:] if path.startswith("/") else path
    return _WHITESPACE_RE.sub("_", name.replace("/", "-"))
