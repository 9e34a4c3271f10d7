"""Run history persistence.

This module provides the StateManager class for appending and reading
run records in a JSONL file.
"""

import json
import logging
from pathlib import Path

from dailyctl.core.paths import ensure_state_dir, get_state_dir
from dailyctl.models.history import RunRecord

logger = logging.getLogger(__name__)


class StateManager:
    """Manages run history in a JSONL file.

    Storage location: ~/.local/state/dailyctl/history.jsonl

    Each line is a complete JSON object representing one RunRecord, so
    writes are plain appends.

    Attributes:
        state_dir: Directory containing the history file.
    """

    HISTORY_FILENAME = "history.jsonl"

    def __init__(self, state_dir: Path | None = None) -> None:
        """Initialize StateManager.

        Args:
            state_dir: Optional override for state directory.
                      Default: ~/.local/state/dailyctl
        """
        self._state_dir = state_dir if state_dir is not None else get_state_dir()

    @property
    def history_path(self) -> Path:
        """Path to the history.jsonl file."""
        return self._state_dir / self.HISTORY_FILENAME

    def record_run(self, record: RunRecord) -> None:
        """Append a run record to the history file.

        Creates the file and parent directories if they don't exist.

        Raises:
            RuntimeError: If the state directory cannot be created.
            OSError: If the file cannot be written.
        """
        if self._state_dir == get_state_dir():
            ensure_state_dir()
        else:
            self._state_dir.mkdir(parents=True, exist_ok=True)

        with self.history_path.open(mode="a", encoding="utf-8") as f:
            f.write(record.to_json_line() + "\n")
            f.flush()

    def get_history(self, limit: int | None = None) -> list[RunRecord]:
        """Read run records, newest first.

        Corrupt lines are logged and skipped.

        Args:
            limit: Maximum number of records to return. None returns all.

        Returns:
            List of RunRecord, newest first. Empty if the file doesn't exist.
        """
        if not self.history_path.exists():
            return []

        records: list[RunRecord] = []
        with self.history_path.open(encoding="utf-8") as f:
            for line_num, line in enumerate(f, start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(RunRecord.from_json_line(line))
                except (json.JSONDecodeError, KeyError, ValueError, TypeError) as e:
                    logger.warning("Skipping corrupt history line %d: %s", line_num, str(e))

        records.reverse()
        if limit is not None:
            return records[:limit]
        return records
