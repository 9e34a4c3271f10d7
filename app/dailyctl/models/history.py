"""Run history model.

Each maintenance run appends one RunRecord to the history file, so the
operator can see afterwards which steps ran, which were skipped and how
the run ended.
"""

import json
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


class StepStatus(str, Enum):
    """Outcome of one step of a run.

    Attributes:
        OK: The step completed.
        FAILED: The step failed; the run continued.
        SKIPPED: The step did not apply (e.g. device or folder absent).
        ABORTED: The step stopped before its irreversible part.
    """

    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class StepOutcome:
    """Outcome of a single step.

    Attributes:
        name: Step label (e.g. 'archive /mnt/data/archive').
        status: How the step ended.
        detail: Optional explanation, such as an error kind.
    """

    name: str
    status: StepStatus
    detail: str | None = None

    def __post_init__(self) -> None:
        """Validate step data after initialization."""
        if not self.name:
            msg = "Step name cannot be empty"
            raise ValueError(msg)

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        result: dict[str, Any] = {"name": self.name, "status": self.status.value}
        if self.detail is not None:
            result["detail"] = self.detail
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StepOutcome":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If status is invalid.
        """
        return cls(
            name=data["name"],
            status=StepStatus(data["status"]),
            detail=data.get("detail"),
        )


@dataclass(frozen=True, slots=True)
class RunRecord:
    """Record of one maintenance run.

    Attributes:
        id: Unique identifier (12-character hex string from UUID).
        timestamp: When the run ended (ISO 8601 with timezone).
        command: The command that was run (e.g. 'dailyctl run').
        stamp: Run label as used in log messages and file names.
        exit_code: Code the process exited with.
        steps: Outcomes of the steps, in execution order.
        metadata: Additional context.
    """

    id: str
    timestamp: str
    command: str
    stamp: str
    exit_code: int
    steps: tuple[StepOutcome, ...] = ()
    metadata: dict[str, Any] = field(default_factory=lambda: {})

    def __post_init__(self) -> None:
        """Validate record data after initialization."""
        if not self.id:
            msg = "Run record ID cannot be empty"
            raise ValueError(msg)
        if not self.timestamp:
            msg = "Timestamp cannot be empty"
            raise ValueError(msg)

    @property
    def success(self) -> bool:
        """Whether the run ended with exit code 0."""
        return self.exit_code == 0

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON storage."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "command": self.command,
            "stamp": self.stamp,
            "exit_code": self.exit_code,
            "steps": [step.to_dict() for step in self.steps],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RunRecord":
        """Deserialize from dictionary.

        Raises:
            KeyError: If required fields are missing.
            ValueError: If step data is invalid.
        """
        return cls(
            id=data["id"],
            timestamp=data["timestamp"],
            command=data["command"],
            stamp=data.get("stamp", ""),
            exit_code=int(data["exit_code"]),
            steps=tuple(StepOutcome.from_dict(step) for step in data.get("steps", [])),
            metadata=data.get("metadata", {}),
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line (no trailing newline)."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json_line(cls, line: str) -> "RunRecord":
        """Deserialize from a JSON line.

        Raises:
            json.JSONDecodeError: If line is not valid JSON.
            KeyError: If required fields are missing.
            ValueError: If data is invalid.
        """
        return cls.from_dict(json.loads(line.strip()))


def create_run_record(
    command: str,
    stamp: str,
    exit_code: int,
    steps: list[StepOutcome] | None = None,
    metadata: dict[str, Any] | None = None,
) -> RunRecord:
    """Factory function to create a new RunRecord.

    Automatically generates a unique ID and current timestamp.
    """
    return RunRecord(
        id=uuid.uuid4().hex[:12],
        timestamp=datetime.now(UTC).isoformat(),
        command=command,
        stamp=stamp,
        exit_code=exit_code,
        steps=tuple(steps or []),
        metadata=metadata or {},
    )
