"""Normalise deployment notifications posted by CI/CD pipelines.

Expected payload::

    {"repo_full_name": "acme/payments", "environment": "production",
     "status": "success", "deployed_at": "2024-05-01T10:00:00Z",
     "pr_number": 42, "commit_sha": "abc123", "pipeline_id": "deploy-prod",
     "trigger_type": "merge"}
"""

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.correlation.deploy_incident import on_deploy
from pulse.events.models import DeploymentRecord
from pulse.metrics.models import PrCycle
from pulse.models.base import as_utc
from pulse.normalizers.common import MalformedEvent, insert_once, parse_timestamp
from pulse.streams.service import repository_by_full_name

logger = structlog.get_logger()


async def normalize_deployment(db: AsyncSession, payload: dict, event_type: str | None = None) -> DeploymentRecord | None:
    repo = await repository_by_full_name(db, payload.get("repo_full_name"))
    if repo is None:
        logger.info("deployment_repo_unresolved", repo_full_name=payload.get("repo_full_name"))
        return None

    environment = payload.get("environment")
    status = payload.get("status")
    if not environment or not status:
        raise MalformedEvent("deployment payload needs environment and status")

    deployed_at = parse_timestamp(payload.get("deployed_at"))
    pr_number = payload.get("pr_number")

    lead_time_hrs = None
    linked_ticket_id = None
    if pr_number is not None:
        result = await db.execute(
            select(PrCycle).where(PrCycle.repo_id == repo.id, PrCycle.pr_number == pr_number)
        )
        pr_cycle = result.scalar_one_or_none()
        if pr_cycle is not None:
            lead_time_hrs = (deployed_at - as_utc(pr_cycle.opened_at)).total_seconds() / 3600
            linked_ticket_id = pr_cycle.linked_ticket_id

    record, created = await insert_once(
        db,
        DeploymentRecord,
        {
            "tech_stream_id": repo.tech_stream_id,
            "environment": environment,
            "deployed_at": deployed_at,
            "commit_sha": payload.get("commit_sha"),
        },
        repo_id=repo.id,
        status=status,
        pipeline_id=payload.get("pipeline_id"),
        trigger_type=payload.get("trigger_type"),
        linked_pr_number=pr_number,
        linked_ticket_id=linked_ticket_id,
        lead_time_hrs=lead_time_hrs,
        caused_incident=False,
    )
    if not created:
        logger.debug("deployment_duplicate", deploy_id=str(record.id))
        return record

    await on_deploy(db, record)
    logger.info(
        "deployment_normalized",
        deploy_id=str(record.id),
        environment=environment,
        status=status,
        lead_time_hrs=lead_time_hrs,
    )
    return record
