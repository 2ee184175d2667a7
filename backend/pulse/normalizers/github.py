"""Normalise GitHub App webhooks into PR, CI/CD and deployment events."""

from collections.abc import Awaitable, Callable

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.correlation.deploy_incident import PRODUCTION, on_deploy
from pulse.events.models import CicdEvent, DeploymentRecord, PrEvent
from pulse.metrics.cycles import refresh_pr_cycle
from pulse.metrics.enrichment import delivery_stream_for_ticket
from pulse.normalizers.common import MalformedEvent, extract_ticket_id, hash_identity, insert_once, parse_timestamp
from pulse.streams.models import Repository, TechStream
from pulse.streams.service import repository_by_full_name, tech_stream_by_install_id

logger = structlog.get_logger()

# review.state -> PR event type
_REVIEW_STATE_MAP: dict[str, str] = {
    "approved": "approved",
    "changes_requested": "changes_requested",
    "commented": "review_submitted",
}


def _pr_event_type(action: str | None, pr: dict) -> str | None:
    if action == "opened":
        return "opened"
    if action == "closed":
        return "merged" if pr.get("merged") else "closed"
    return None


async def _resolve(db: AsyncSession, payload: dict) -> tuple[TechStream, Repository] | None:
    tech_stream = await tech_stream_by_install_id(db, (payload.get("installation") or {}).get("id"))
    if tech_stream is None:
        return None
    repo = await repository_by_full_name(db, (payload.get("repository") or {}).get("full_name"))
    if repo is None:
        return None
    return tech_stream, repo


async def _pr_fields(db: AsyncSession, payload: dict, pr: dict) -> dict:
    repository = payload.get("repository") or {}
    head_ref = (pr.get("head") or {}).get("ref")
    author = (pr.get("user") or {}).get("login")
    linked_ticket_id = extract_ticket_id(head_ref, pr.get("title"), pr.get("body"))
    return {
        "source": "github",
        "github_org": (repository.get("owner") or {}).get("login", ""),
        "github_repo": repository.get("name", ""),
        "author_hash": hash_identity(author) if author else None,
        "branch_name": head_ref,
        "base_branch": (pr.get("base") or {}).get("ref"),
        "linked_ticket_id": linked_ticket_id,
        "delivery_stream_id": await delivery_stream_for_ticket(db, linked_ticket_id),
    }


async def handle_pull_request(db: AsyncSession, payload: dict) -> bool:
    pr = payload.get("pull_request") or {}
    event_type = _pr_event_type(payload.get("action"), pr)
    if event_type is None:
        return False

    resolved = await _resolve(db, payload)
    if resolved is None:
        logger.info("github_repo_unresolved", repository=(payload.get("repository") or {}).get("full_name"))
        return False
    tech_stream, repo = resolved

    if pr.get("number") is None:
        raise MalformedEvent("pull_request payload has no number")

    _, created = await insert_once(
        db,
        PrEvent,
        {
            "repo_id": repo.id,
            "pr_number": pr["number"],
            "event_type": event_type,
            "event_timestamp": parse_timestamp(pr.get("updated_at") or pr.get("created_at")),
        },
        tech_stream_id=tech_stream.id,
        lines_added=pr.get("additions"),
        lines_removed=pr.get("deletions"),
        files_changed=pr.get("changed_files"),
        **(await _pr_fields(db, payload, pr)),
    )

    if created:
        await refresh_pr_cycle(db, repo.id, pr["number"], tech_stream.id)
    return created


async def handle_pull_request_review(db: AsyncSession, payload: dict) -> bool:
    review = payload.get("review") or {}
    event_type = _REVIEW_STATE_MAP.get((review.get("state") or "").lower())
    if event_type is None:
        return False

    resolved = await _resolve(db, payload)
    if resolved is None:
        return False
    tech_stream, repo = resolved

    pr = payload.get("pull_request") or {}
    if pr.get("number") is None:
        raise MalformedEvent("pull_request_review payload has no pull request number")

    reviewer = (review.get("user") or {}).get("login")
    _, created = await insert_once(
        db,
        PrEvent,
        {
            "repo_id": repo.id,
            "pr_number": pr["number"],
            "event_type": event_type,
            "event_timestamp": parse_timestamp(review.get("submitted_at")),
        },
        tech_stream_id=tech_stream.id,
        reviewer_hash=hash_identity(reviewer) if reviewer else None,
        review_state=review.get("state"),
        **(await _pr_fields(db, payload, pr)),
    )
    if created:
        await refresh_pr_cycle(db, repo.id, pr["number"], tech_stream.id)
    return created


async def handle_workflow_run(db: AsyncSession, payload: dict) -> bool:
    if payload.get("action") != "completed":
        return False

    tech_stream = await tech_stream_by_install_id(db, (payload.get("installation") or {}).get("id"))
    if tech_stream is None:
        return False

    run = payload.get("workflow_run") or {}
    _, created = await insert_once(
        db,
        CicdEvent,
        {
            "pipeline_id": str(run.get("workflow_id", "")),
            "pipeline_run_id": str(run.get("id", "")),
            "event_type": "build_completed",
        },
        source="github",
        tech_stream_id=tech_stream.id,
        environment="ci",
        status=run.get("conclusion") or "unknown",
        commit_sha=run.get("head_sha"),
        event_timestamp=parse_timestamp(run.get("updated_at") or run.get("created_at")),
    )
    return created


async def handle_deployment_status(db: AsyncSession, payload: dict) -> bool:
    deployment = payload.get("deployment") or {}
    deploy_status = payload.get("deployment_status") or {}
    state = deploy_status.get("state")
    if state not in ("success", "failure"):
        return False

    tech_stream = await tech_stream_by_install_id(db, (payload.get("installation") or {}).get("id"))
    if tech_stream is None:
        return False

    environment = deploy_status.get("environment") or deployment.get("environment") or "unknown"
    event_timestamp = parse_timestamp(deploy_status.get("created_at"))
    commit_sha = deployment.get("sha")

    _, created = await insert_once(
        db,
        CicdEvent,
        {
            "pipeline_id": str(deployment.get("id", "")),
            "pipeline_run_id": str(deploy_status.get("id", "")),
            "event_type": "deploy_completed" if state == "success" else "deploy_failed",
        },
        source="github",
        tech_stream_id=tech_stream.id,
        environment=environment,
        status=state,
        commit_sha=commit_sha,
        event_timestamp=event_timestamp,
    )

    if environment == PRODUCTION and state == "success":
        repo = await repository_by_full_name(db, (payload.get("repository") or {}).get("full_name"))
        record, record_created = await insert_once(
            db,
            DeploymentRecord,
            {
                "tech_stream_id": tech_stream.id,
                "environment": environment,
                "deployed_at": event_timestamp,
                "commit_sha": commit_sha,
            },
            repo_id=repo.id if repo else None,
            status="success",
            pipeline_id=str(deployment.get("id", "")) or None,
            trigger_type="github_deployment",
            caused_incident=False,
        )
        if record_created:
            await on_deploy(db, record)
    return created


_HANDLERS: dict[str, Callable[[AsyncSession, dict], Awaitable[bool]]] = {
    "pull_request": handle_pull_request,
    "pull_request_review": handle_pull_request_review,
    "workflow_run": handle_workflow_run,
    "deployment_status": handle_deployment_status,
}


async def normalize_github(db: AsyncSession, payload: dict, event_type: str | None = None) -> bool:
    """Dispatch on the ``X-GitHub-Event`` type. Other event types are ignored.

    Returns True when a new canonical row was written.
    """
    handler = _HANDLERS.get(event_type or "")
    if handler is None:
        logger.debug("github_event_ignored", event_type=event_type)
        return False

    created = await handler(db, payload)
    logger.info("github_event_normalized", event_type=event_type, created=created)
    return created
