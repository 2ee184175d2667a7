"""Normalise Jira Cloud issue webhooks into work-item and defect events."""

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import DefectEvent, WorkItemEvent
from pulse.metrics.cycles import compute_work_item_cycle
from pulse.metrics.enrichment import enrich_by_ticket_id
from pulse.normalizers.common import MalformedEvent, insert_once, parse_timestamp
from pulse.streams.service import delivery_stream_id_by_name, tech_stream_id_by_name
from pulse.streams.stage_mapping import project_key_for, resolve_stage

logger = structlog.get_logger()

IMPEDIMENT = "Impediment"

# Jira priority name -> defect severity
_PRIORITY_TO_SEVERITY: dict[str, str] = {
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
}


def classify_changelog(webhook_event: str, changelog: dict | None) -> list[tuple[str, dict | None]]:
    """Map a Jira webhook onto canonical work-item event types.

    Returns ``(event_type, changelog_item)`` pairs. One update can carry
    several items (a move to Done usually sets the resolution in the same
    change), and each becomes its own event.
    """
    if webhook_event == "jira:issue_created":
        return [("created", None)]
    if webhook_event != "jira:issue_updated" or not changelog:
        return []

    found: list[tuple[str, dict | None]] = []
    seen: set[str] = set()
    for item in changelog.get("items") or []:
        field = item.get("field")
        event_type = None
        if field == "status":
            event_type = "transitioned"
        elif field == "Flagged":
            if item.get("toString") == IMPEDIMENT:
                event_type = "blocked"
            elif not item.get("toString") and item.get("fromString") == IMPEDIMENT:
                event_type = "unblocked"
        elif field == "resolution" and item.get("toString"):
            event_type = "completed"

        if event_type and event_type not in seen:
            seen.add(event_type)
            found.append((event_type, item))
    return found


def severity_for_priority(priority: str | None) -> str | None:
    if not priority:
        return None
    return _PRIORITY_TO_SEVERITY.get(priority.lower())


async def normalize_jira(db: AsyncSession, payload: dict, event_type: str | None = None) -> int:
    """Write canonical events for one Jira webhook. Returns how many rows were new.

    ``event_type`` (the queue's raw type) is ignored; Jira names the event in
    the body as ``webhookEvent``.
    """
    issue = payload.get("issue") or {}
    ticket_id = issue.get("key")
    classified = classify_changelog(payload.get("webhookEvent", ""), payload.get("changelog"))
    if not classified:
        logger.debug("jira_event_ignored", webhook_event=payload.get("webhookEvent"), ticket_id=ticket_id)
        return 0
    if not ticket_id:
        raise MalformedEvent("jira payload has no issue key")

    fields = issue.get("fields") or {}
    event_timestamp = parse_timestamp(payload.get("timestamp"))
    project_key = project_key_for(ticket_id)
    delivery_stream_id = await delivery_stream_id_by_name(db, fields.get("customfield_delivery_stream"))
    ticket_type = (fields.get("issuetype") or {}).get("name")
    priority = (fields.get("priority") or {}).get("name")

    created_count = 0
    for canonical_type, item in classified:
        extra: dict = {}
        if canonical_type == "transitioned":
            from_status = item.get("fromString")
            to_status = item.get("toString")
            from_stage = await resolve_stage(db, project_key, from_status)
            to_stage = await resolve_stage(db, project_key, to_status)
            extra = {
                "from_status": from_status,
                "to_status": to_status,
                "from_stage": from_stage.value if from_stage else None,
                "to_stage": to_stage.value if to_stage else None,
            }
            if to_status and to_stage is None:
                logger.info("jira_status_unmapped", project_key=project_key, status=to_status)
        elif canonical_type == "blocked":
            extra = {
                "blocking_tech_stream_id": await tech_stream_id_by_name(
                    db, fields.get("customfield_blocking_tech_stream")
                ),
                "blocked_reason": fields.get("customfield_blocked_reason"),
            }

        _, created = await insert_once(
            db,
            WorkItemEvent,
            {"ticket_id": ticket_id, "event_type": canonical_type, "event_timestamp": event_timestamp},
            source="jira",
            ticket_type=ticket_type,
            priority=priority,
            story_points=fields.get("story_points"),
            labels=fields.get("labels"),
            delivery_stream_id=delivery_stream_id,
            **extra,
        )
        if not created:
            logger.debug("jira_event_duplicate", ticket_id=ticket_id, event_type=canonical_type)
            continue
        created_count += 1

        if canonical_type == "created" and (ticket_type or "").lower() == "bug":
            await insert_once(
                db,
                DefectEvent,
                {"ticket_id": ticket_id, "event_type": "logged", "event_timestamp": event_timestamp},
                source="jira",
                delivery_stream_id=delivery_stream_id,
                found_in_stage=fields.get("customfield_found_in_stage") or "unknown",
                introduced_in_stage=fields.get("customfield_introduced_in_stage"),
                severity=severity_for_priority(priority),
            )

    if created_count:
        # Late transitions still count once the ticket is completed
        await compute_work_item_cycle(db, ticket_id)
        if delivery_stream_id is not None:
            await enrich_by_ticket_id(db, ticket_id)

    logger.info("jira_event_normalized", ticket_id=ticket_id, created=created_count)
    return created_count
