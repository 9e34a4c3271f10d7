"""The daily maintenance sequence.

Order of work:

1. local backup to the encrypted disks;
2. every configured archive set;
3. the offload set of the current month, then any extra months;
4. shared staging of the home directory.

Each component registers its cleanup with the session before any work
starts, so a signal at any point releases everything already acquired.
"""

import logging
from datetime import datetime

from dailyctl.archive.pipeline import EncryptedArchivePipeline
from dailyctl.backup.local import LocalBackup
from dailyctl.core.session import MaintenanceSession
from dailyctl.models.history import StepOutcome, StepStatus
from dailyctl.safety.scrubber import ScrubResult
from dailyctl.sharing.staging import SharedStaging
from dailyctl.utils.naming import current_month

logger = logging.getLogger(__name__)


def scrub_outcome(name: str, result: ScrubResult) -> StepOutcome:
    """Summary of a scrub for the run history."""
    if result.success:
        return StepOutcome(name, StepStatus.OK, f"{len(result.removed)} removed")
    return StepOutcome(name, StepStatus.FAILED, result.status.value)


def run_daily(session: MaintenanceSession, now: datetime | None = None) -> None:
    """Run the whole daily sequence inside a session.

    Raises:
        EscalationError: If a step hits an escalating failure; the
            session turns it into cleanup and exit.
    """
    settings = session.settings
    local = LocalBackup(settings, session.escalator)
    pipeline = EncryptedArchivePipeline(settings, session.escalator, stamp=session.stamp)
    staging = SharedStaging(settings, session.escalator)

    session.register("local backup", local.cleanup)
    session.register("archive", pipeline.cleanup)
    session.register("shared preparation", staging.cleanup)

    for outcome in local.run():
        session.record(outcome)

    for archive_set in settings.effective_archive_sets:
        session.record(pipeline.run_archive_set(archive_set).outcome())

    months = [current_month(now)]
    months.extend(month for month in settings.extra_months if month not in months)
    for month in months:
        result = pipeline.run_monthly_archive(month)
        if result is None:
            session.record(
                StepOutcome(f"archive {month}", StepStatus.SKIPPED, "no offload folder")
            )
        else:
            session.record(result.outcome())

    if settings.shared_staging is None:
        logger.info("no shared staging configured")
        session.record(StepOutcome("shared preparation", StepStatus.SKIPPED, "not configured"))
    else:
        session.record(scrub_outcome("shared preparation", staging.prepare(settings.home)))
