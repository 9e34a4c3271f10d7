"""Decide whether a directory may be scrubbed.

Scrubbing deletes recursively, so the target is checked against two
distinct predicates, always in this order:

1. Deny-list, exact match: the home directory and the bulk-data root are
   never scrubbed as a whole.
2. Allow-list, prefix match: the target must be one of the allowed roots
   or lie below one.

Paths are resolved (made absolute, symlinks followed) on every call.
Nothing is cached; the filesystem may change between calls.
"""

import logging
import os
from collections.abc import Iterable
from enum import Enum
from pathlib import Path

from dailyctl.core.settings import MaintenanceSettings

logger = logging.getLogger(__name__)


class SafetyVerdict(str, Enum):
    """Outcome of classifying a scrub target.

    Attributes:
        ALLOWED: The target may be scrubbed.
        FORBIDDEN_EXACT: The target is a protected root itself.
        FORBIDDEN_OUTSIDE_JAIL: The target is not under any allowed root.
    """

    ALLOWED = "allowed"
    FORBIDDEN_EXACT = "forbidden_exact"
    FORBIDDEN_OUTSIDE_JAIL = "forbidden_outside_jail"


def resolve_path(path: Path | str) -> Path:
    """Absolute, symlink-free form of a path.

    Missing trailing components are kept as given.
    """
    return Path(os.path.realpath(Path(path).expanduser()))


class PathSafetyClassifier:
    """Classifies scrub targets against protected and allowed roots.

    Roots are stored as given and resolved at classification time, like
    the candidate itself.
    """

    def __init__(self, protected_roots: Iterable[Path], allowed_roots: Iterable[Path]) -> None:
        self._protected = tuple(protected_roots)
        self._allowed = tuple(allowed_roots)

    @classmethod
    def from_settings(cls, settings: MaintenanceSettings) -> "PathSafetyClassifier":
        """Build a classifier from the configured roots."""
        return cls(settings.protected_roots, settings.allowed_roots)

    def classify(self, candidate: Path | str) -> SafetyVerdict:
        """Classify a candidate scrub target.

        Args:
            candidate: Path to check; relative paths and symlinks are
                resolved first.

        Returns:
            The verdict for the resolved path.
        """
        resolved = resolve_path(candidate)

        for root in self._protected:
            if resolved == resolve_path(root):
                logger.warning("unsafe to remove sensitive data from %s", resolved)
                return SafetyVerdict.FORBIDDEN_EXACT

        for root in self._allowed:
            if resolved.is_relative_to(resolve_path(root)):
                return SafetyVerdict.ALLOWED

        logger.warning("unsafe to remove sensitive data from %s", resolved)
        return SafetyVerdict.FORBIDDEN_OUTSIDE_JAIL

    def is_allowed(self, candidate: Path | str) -> bool:
        """Shortcut for ``classify(candidate) == SafetyVerdict.ALLOWED``."""
        return self.classify(candidate) == SafetyVerdict.ALLOWED
