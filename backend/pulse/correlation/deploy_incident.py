"""Link production deploys to the incidents they plausibly caused.

The window is inclusive at both ends: an incident exactly
CORRELATION_WINDOW_MINUTES after a deploy is still linked. Re-running either
direction rewrites the same link values.
"""

from datetime import timedelta

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import DeploymentRecord, IncidentEvent
from pulse.models.base import as_utc

logger = structlog.get_logger()

CORRELATION_WINDOW_MINUTES = 60
PRODUCTION = "production"


async def on_deploy(
    db: AsyncSession,
    record: DeploymentRecord,
    window_minutes: int = CORRELATION_WINDOW_MINUTES,
) -> IncidentEvent | None:
    """Look forward from a production deploy for the first incident on the same tech stream."""
    if record.environment != PRODUCTION:
        return None

    deployed_at = as_utc(record.deployed_at)
    window_end = deployed_at + timedelta(minutes=window_minutes)

    result = await db.execute(
        select(IncidentEvent)
        .where(
            IncidentEvent.tech_stream_id == record.tech_stream_id,
            IncidentEvent.occurred_at >= deployed_at,
            IncidentEvent.occurred_at <= window_end,
        )
        .order_by(IncidentEvent.occurred_at.asc())
        .limit(1)
    )
    incident = result.scalar_one_or_none()
    if incident is None:
        return None

    record.caused_incident = True
    record.incident_id = incident.incident_id
    await db.flush()

    logger.info(
        "deploy_linked_to_incident",
        deploy_id=str(record.id),
        incident_id=incident.incident_id,
        direction="forward",
    )
    return incident


async def on_incident_resolved(
    db: AsyncSession,
    event: IncidentEvent,
    window_minutes: int = CORRELATION_WINDOW_MINUTES,
) -> DeploymentRecord | None:
    """Look back from a resolved incident for the most recent production deploy; link both ways."""
    occurred_at = as_utc(event.occurred_at)
    window_start = occurred_at - timedelta(minutes=window_minutes)

    result = await db.execute(
        select(DeploymentRecord)
        .where(
            DeploymentRecord.tech_stream_id == event.tech_stream_id,
            DeploymentRecord.environment == PRODUCTION,
            DeploymentRecord.deployed_at >= window_start,
            DeploymentRecord.deployed_at <= occurred_at,
        )
        .order_by(DeploymentRecord.deployed_at.desc())
        .limit(1)
    )
    deploy = result.scalar_one_or_none()
    if deploy is None:
        return None

    deploy.caused_incident = True
    deploy.incident_id = event.incident_id
    event.related_deploy_id = deploy.id
    await db.flush()

    logger.info(
        "deploy_linked_to_incident",
        deploy_id=str(deploy.id),
        incident_id=event.incident_id,
        direction="backward",
    )
    return deploy
