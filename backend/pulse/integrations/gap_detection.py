"""Backfill PR close/merge events that never arrived by webhook.

Recently closed PRs are read from the GitHub API; any without a matching
merged/closed PrEvent are replayed through the GitHub normalizer as if the
webhook had been delivered.
"""

import uuid
from datetime import datetime, timedelta
from typing import NamedTuple

import httpx
import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import PrEvent
from pulse.integrations.github_client import GitHubClient
from pulse.models.base import utc_now
from pulse.normalizers.common import parse_timestamp
from pulse.normalizers.github import normalize_github
from pulse.streams.models import Repository, TechStream

logger = structlog.get_logger()


class RepoTarget(NamedTuple):
    repo_id: uuid.UUID
    org: str
    name: str
    full_name: str
    install_id: str


def _pr_webhook(pr: dict, target: RepoTarget, action: str) -> dict:
    return {
        "action": action,
        "pull_request": pr,
        "repository": {
            "full_name": target.full_name,
            "name": target.name,
            "owner": {"login": target.org},
        },
        "installation": {"id": target.install_id},
    }


async def _has_event(db: AsyncSession, repo_id: uuid.UUID, pr_number: int, event_type: str) -> bool:
    result = await db.execute(
        select(PrEvent.id)
        .where(PrEvent.repo_id == repo_id, PrEvent.pr_number == pr_number, PrEvent.event_type == event_type)
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def check_repository(
    db: AsyncSession,
    client: GitHubClient,
    target: RepoTarget,
    since: datetime,
) -> dict:
    pulls = await client.list_recently_closed_pulls(target.org, target.name)

    checked = 0
    backfilled = 0
    for pr in pulls:
        if not pr.get("closed_at"):
            continue
        # Sorted by updated desc: everything after this is older still
        if parse_timestamp(pr.get("updated_at")) < since:
            break

        checked += 1
        closing_type = "merged" if pr.get("merged_at") else "closed"
        if await _has_event(db, target.repo_id, pr["number"], closing_type):
            continue

        if not await _has_event(db, target.repo_id, pr["number"], "opened"):
            opened = {**pr, "updated_at": pr.get("created_at")}
            await normalize_github(db, _pr_webhook(opened, target, "opened"), "pull_request")

        closed = {**pr, "merged": bool(pr.get("merged_at"))}
        await normalize_github(db, _pr_webhook(closed, target, "closed"), "pull_request")
        backfilled += 1

    await db.commit()
    return {"checked": checked, "backfilled": backfilled}


async def run_gap_detection(
    db: AsyncSession,
    client: GitHubClient,
    lookback_days: int = 7,
    now: datetime | None = None,
) -> dict:
    """Check every active repository of every active tech stream with a GitHub App install."""
    since = (now or utc_now()) - timedelta(days=lookback_days)

    result = await db.execute(
        select(
            Repository.id,
            Repository.github_org,
            Repository.github_repo_name,
            Repository.full_name,
            TechStream.github_install_id,
        )
        .join(TechStream, Repository.tech_stream_id == TechStream.id)
        .where(
            Repository.is_active == True,  # noqa: E712
            TechStream.is_active == True,  # noqa: E712
            TechStream.github_install_id.is_not(None),
        )
    )
    targets = [RepoTarget(*row) for row in result.all()]

    totals = {"checked": 0, "backfilled": 0}
    for target in targets:
        try:
            counts = await check_repository(db, client, target, since)
        except httpx.HTTPStatusError as exc:
            await db.rollback()
            logger.warning(
                "github_gap_detection_http_error",
                repo=target.full_name,
                status_code=exc.response.status_code,
                detail=exc.response.text[:200],
            )
            continue
        except Exception:
            await db.rollback()
            logger.exception("github_gap_detection_repo_failed", repo=target.full_name)
            continue
        totals["checked"] += counts["checked"]
        totals["backfilled"] += counts["backfilled"]

    logger.info("github_gap_detection_complete", repositories=len(targets), **totals)
    return totals
