"""Sensitive-data removal: target classification and tree scrubbing."""

from dailyctl.safety.classifier import PathSafetyClassifier, SafetyVerdict, resolve_path
from dailyctl.safety.scrubber import (
    PatternKind,
    ScrubPattern,
    ScrubResult,
    ScrubStatus,
    SensitiveScrubber,
    build_patterns,
)
from dailyctl.safety.tree import EntryKind, LocalTreeOps, TreeEntry, TreeOps

__all__ = [
    "EntryKind",
    "LocalTreeOps",
    "PathSafetyClassifier",
    "PatternKind",
    "SafetyVerdict",
    "ScrubPattern",
    "ScrubResult",
    "ScrubStatus",
    "SensitiveScrubber",
    "TreeEntry",
    "TreeOps",
    "build_patterns",
    "resolve_path",
]
