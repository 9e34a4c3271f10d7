"""Precondition checks that stop the run when they fail.

Each check logs what it looks at, and escalates through the given
Escalator when the precondition does not hold. Callers that must not
stop the run (cleanup callbacks) have no Escalator and cannot use these.
"""

import logging
from pathlib import Path

from dailyctl.core.cleanup import Escalator
from dailyctl.core.codes import ExitCode

logger = logging.getLogger(__name__)


def not_empty(escalator: Escalator, description: str, value: object) -> None:
    """Ensure a required value was provided.

    Raises:
        EscalationError: With MISSING_INPUT if value is None or empty.
    """
    if value is None or value == "" or value == ():
        escalator.escalate(
            ExitCode.MISSING_INPUT,
            f"checking {description}",
            f"cannot run without {description}",
        )


def check_exists(escalator: Escalator, path: Path) -> None:
    """Ensure a file, folder or link exists.

    Raises:
        EscalationError: With MISSING_FILE if nothing exists at path.
    """
    escalator.setting("file or directory name that must exist", path)
    if not (path.exists() or path.is_symlink()):
        escalator.escalate(
            ExitCode.MISSING_FILE,
            f"checking {path}",
            f"cannot find {path}",
        )


def check_contains(escalator: Escalator, path: Path, text: str) -> None:
    """Ensure a file exists and contains the given text.

    Matching is plain substring containment, not parsing.

    Raises:
        EscalationError: With MISSING_FILE if the file is absent, or
            BAD_CONFIGURATION if the text is not in it.
    """
    escalator.setting("file name to check", path)
    escalator.setting("string to check for", text)
    not_empty(escalator, "string to check for", text)

    try:
        content = path.read_text(encoding="utf-8", errors="replace")
    except FileNotFoundError:
        escalator.escalate(
            ExitCode.MISSING_FILE,
            f"checking {path}",
            f"cannot find {path}",
        )
    except OSError as e:
        logger.error("Cannot read %s: %s", path, e)
        escalator.escalate(
            ExitCode.MISSING_FILE,
            f"reading {path}",
            f"cannot read {path}",
        )

    if text not in content:
        escalator.escalate(
            ExitCode.BAD_CONFIGURATION,
            f"checking {path}",
            f"{path} does not contain {text}",
        )
