"""Normalise alarm / incident notifications from the on-call tooling."""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.correlation.deploy_incident import on_incident_resolved
from pulse.events.models import IncidentEvent
from pulse.models.base import as_utc
from pulse.normalizers.common import MalformedEvent, insert_once, parse_timestamp
from pulse.streams.service import repository_by_deploy_target

logger = structlog.get_logger()

TRIGGER_TYPES = ("alarm_triggered", "incident_opened")
RESOLVED_TYPES = ("alarm_resolved", "incident_resolved")


async def normalize_incident(db: AsyncSession, payload: dict, event_type: str | None = None) -> IncidentEvent | None:
    service_name = payload.get("service_name")
    repo = await repository_by_deploy_target(db, service_name)
    if repo is None:
        logger.info("incident_service_unresolved", service_name=service_name)
        return None

    kind = payload.get("event_type") or event_type
    if kind not in TRIGGER_TYPES + RESOLVED_TYPES:
        logger.debug("incident_event_ignored", event_type=kind)
        return None

    incident_id = payload.get("incident_id")
    if not incident_id:
        raise MalformedEvent("incident payload has no incident_id")
    incident_id = str(incident_id)

    occurred_at = parse_timestamp(payload.get("occurred_at"))

    resolved_at = None
    time_to_restore_min = None
    if kind in RESOLVED_TYPES:
        result = await db.execute(
            select(IncidentEvent)
            .where(IncidentEvent.incident_id == incident_id, IncidentEvent.event_type.in_(TRIGGER_TYPES))
            .order_by(IncidentEvent.occurred_at.asc())
            .limit(1)
        )
        trigger = result.scalar_one_or_none()
        if trigger is not None:
            time_to_restore_min = round((occurred_at - as_utc(trigger.occurred_at)).total_seconds() / 60)
            resolved_at = occurred_at

    event, created = await insert_once(
        db,
        IncidentEvent,
        {"incident_id": incident_id, "event_type": kind},
        service_name=service_name,
        severity=payload.get("severity"),
        description=payload.get("description"),
        tech_stream_id=repo.tech_stream_id,
        occurred_at=occurred_at,
        resolved_at=resolved_at,
        time_to_restore_min=time_to_restore_min,
    )
    if not created:
        logger.debug("incident_event_duplicate", incident_id=incident_id, event_type=kind)
        return event

    if kind in RESOLVED_TYPES:
        await on_incident_resolved(db, event)

    logger.info(
        "incident_event_normalized",
        incident_id=incident_id,
        event_type=kind,
        time_to_restore_min=time_to_restore_min,
    )
    return event
