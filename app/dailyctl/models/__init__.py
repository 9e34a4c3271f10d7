"""Data models for dailyctl."""

from dailyctl.models.history import RunRecord, StepOutcome, StepStatus, create_run_record

__all__ = [
    "RunRecord",
    "StepOutcome",
    "StepStatus",
    "create_run_record",
]
