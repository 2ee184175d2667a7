"""Hard-delete history older than each table's retention horizon."""

import calendar
from datetime import datetime

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import CicdEvent, DefectEvent, DeploymentRecord, IncidentEvent, PrEvent, WorkItemEvent
from pulse.forecast.models import ForecastSnapshot
from pulse.metrics.models import PrCycle, WorkItemCycle
from pulse.models.base import utc_now
from pulse.platform_settings.schemas import RetentionPolicy
from pulse.platform_settings.service import LAST_RETENTION_RUN_KEY, RETENTION_MONTHS_KEY, get_setting, record_setting
from pulse.queue.models import QueuedEvent

logger = structlog.get_logger()

DEFAULT_RETENTION_MONTHS: dict[str, int] = {
    "work_item_events": 24,
    "defect_events": 24,
    "pr_events": 24,
    "cicd_events": 24,
    "incident_events": 24,
    "work_item_cycles": 36,
    "pr_cycles": 24,
    "deployment_records": 24,
    "forecast_snapshots": 12,
    "event_queue": 6,
}

# table -> the column its age is measured by
RETENTION_COLUMNS = {
    "work_item_events": WorkItemEvent.event_timestamp,
    "defect_events": DefectEvent.event_timestamp,
    "pr_events": PrEvent.event_timestamp,
    "cicd_events": CicdEvent.event_timestamp,
    "incident_events": IncidentEvent.occurred_at,
    "work_item_cycles": WorkItemCycle.completed_at,
    "pr_cycles": PrCycle.opened_at,
    "deployment_records": DeploymentRecord.deployed_at,
    "forecast_snapshots": ForecastSnapshot.computed_at,
    "event_queue": QueuedEvent.enqueued_at,
}


def months_before(moment: datetime, months: int) -> datetime:
    """Same wall-clock time *months* calendar months earlier, day clamped to month end."""
    month_index = moment.year * 12 + (moment.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


async def effective_retention(db: AsyncSession) -> dict[str, int]:
    policy = await get_setting(db, RETENTION_MONTHS_KEY, RetentionPolicy())
    return policy.merged_over(DEFAULT_RETENTION_MONTHS)


async def run_retention_sweep(db: AsyncSession, now: datetime | None = None) -> dict[str, int]:
    """Delete expired rows table by table. Returns deleted counts keyed by table.

    Override keys naming tables this sweep does not know are skipped.
    """
    now = now or utc_now()
    deleted: dict[str, int] = {}

    for table, months in (await effective_retention(db)).items():
        column = RETENTION_COLUMNS.get(table)
        if column is None:
            logger.warning("retention_table_unknown", table=table)
            continue

        cutoff = months_before(now, months)
        result = await db.execute(
            delete(column.class_).where(column < cutoff).execution_options(synchronize_session=False)
        )
        deleted[table] = result.rowcount or 0

    await db.commit()
    await record_setting(
        db,
        LAST_RETENTION_RUN_KEY,
        now.isoformat(),
        description="Last time the data retention job ran",
    )

    logger.info("retention_sweep_complete", deleted=deleted, total=sum(deleted.values()))
    return deleted
