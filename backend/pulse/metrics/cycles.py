"""Per-subject cycle computation from canonical event history.

Both computations read every event for one subject, derive the timings, and
upsert a single row. They only flush; the caller owns the transaction.
"""

import uuid
from datetime import datetime

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import PrEvent, WorkItemEvent
from pulse.metrics.models import PrCycle, WorkItemCycle
from pulse.models.base import as_utc
from pulse.streams.stage_mapping import load_active_stages, project_key_for

logger = structlog.get_logger()

REVIEW_EVENT_TYPES = ("review_submitted", "changes_requested", "approved")


def _hours_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() * 1000 / 3.6e6


def _days_between(start: datetime, end: datetime) -> float:
    return (as_utc(end) - as_utc(start)).total_seconds() / 86400


def _first(events: list, *event_types: str):
    return next((e for e in events if e.event_type in event_types), None)


async def compute_pr_cycle(
    db: AsyncSession,
    repo_id: uuid.UUID,
    pr_number: int,
    tech_stream_id: uuid.UUID,
) -> PrCycle | None:
    """Recompute the PrCycle for one pull request. None when there is no opened event."""
    result = await db.execute(
        select(PrEvent)
        .where(PrEvent.repo_id == repo_id, PrEvent.pr_number == pr_number)
        .order_by(PrEvent.event_timestamp.asc())
    )
    events = list(result.scalars().all())

    opened = _first(events, "opened")
    if opened is None:
        return None

    merged = _first(events, "merged")
    closed = _first(events, "closed")
    approved = _first(events, "approved")
    first_review = _first(events, "review_submitted", "approved")

    opened_at = as_utc(opened.event_timestamp)
    merged_at = as_utc(merged.event_timestamp) if merged else None

    rounds = sum(1 for e in events if e.event_type == "review_submitted")

    reviewer_hashes: list[str] = []
    for e in events:
        if e.event_type in REVIEW_EVENT_TYPES and e.reviewer_hash and e.reviewer_hash not in reviewer_hashes:
            reviewer_hashes.append(e.reviewer_hash)

    # Churn: merged, then closed, then opened
    reference = merged or closed or opened
    lines_changed = None
    if reference.lines_added is not None and reference.lines_removed is not None:
        lines_changed = reference.lines_added + reference.lines_removed

    latest = events[-1]
    delivery_stream_id = next(
        (e.delivery_stream_id for e in reversed(events) if e.delivery_stream_id is not None), None
    )

    values = {
        "tech_stream_id": tech_stream_id,
        "delivery_stream_id": delivery_stream_id,
        "linked_ticket_id": latest.linked_ticket_id or opened.linked_ticket_id,
        "author_hash": opened.author_hash,
        "opened_at": opened_at,
        "first_review_at": as_utc(first_review.event_timestamp) if first_review else None,
        "approved_at": as_utc(approved.event_timestamp) if approved else None,
        "merged_at": merged_at,
        "time_to_first_review_hrs": (
            _hours_between(opened_at, first_review.event_timestamp) if first_review else None
        ),
        "time_to_merge_hrs": _hours_between(opened_at, merged_at) if merged_at else None,
        "review_rounds": rounds or None,
        "reviewer_hashes": reviewer_hashes or None,
        "reviewer_count": len(reviewer_hashes) or None,
        "lines_changed": lines_changed,
        "files_changed": reference.files_changed,
    }

    existing = await db.execute(
        select(PrCycle).where(PrCycle.repo_id == repo_id, PrCycle.pr_number == pr_number)
    )
    cycle = existing.scalar_one_or_none()
    if cycle is None:
        cycle = PrCycle(repo_id=repo_id, pr_number=pr_number, **values)
        db.add(cycle)
    else:
        for field, value in values.items():
            setattr(cycle, field, value)
    await db.flush()

    logger.info(
        "pr_cycle_computed",
        repo_id=str(repo_id),
        pr_number=pr_number,
        time_to_merge_hrs=cycle.time_to_merge_hrs,
    )
    return cycle


async def refresh_pr_cycle(
    db: AsyncSession,
    repo_id: uuid.UUID,
    pr_number: int,
    tech_stream_id: uuid.UUID,
) -> PrCycle | None:
    """Recompute the PrCycle once the PR has been merged or closed.

    Called for every new PR event, so reviews or an opened event that arrive
    after the merge still land in the cycle.
    """
    terminal = await db.scalar(
        select(PrEvent.id)
        .where(
            PrEvent.repo_id == repo_id,
            PrEvent.pr_number == pr_number,
            PrEvent.event_type.in_(("merged", "closed")),
        )
        .limit(1)
    )
    if terminal is None:
        return None
    return await compute_pr_cycle(db, repo_id, pr_number, tech_stream_id)


async def compute_work_item_cycle(db: AsyncSession, ticket_id: str) -> WorkItemCycle | None:
    """Recompute the WorkItemCycle for one ticket. None until it has a completed event.

    Time accrues from the first transition into an active-work stage: each
    transition's to_stage owns the span until the next transition (or
    completion). Spans in active stages count as active time, the rest as wait.
    """
    result = await db.execute(
        select(WorkItemEvent)
        .where(WorkItemEvent.ticket_id == ticket_id)
        .order_by(WorkItemEvent.event_timestamp.asc())
    )
    events = list(result.scalars().all())

    completed = _first(events, "completed")
    if completed is None:
        return None

    created = _first(events, "created")
    completed_at = as_utc(completed.event_timestamp)
    transitions = [e for e in events if e.event_type == "transitioned" and e.to_stage is not None]

    active_stages = await load_active_stages(db, project_key_for(ticket_id))

    first_active_idx = next(
        (i for i, t in enumerate(transitions) if t.to_stage in active_stages), None
    )

    stage_durations: dict[str, float] = {}
    active_days = 0.0
    wait_days = 0.0
    first_in_progress = None

    if first_active_idx is not None:
        relevant = transitions[first_active_idx:]
        first_in_progress = as_utc(relevant[0].event_timestamp)
        for i, current in enumerate(relevant):
            next_ts = relevant[i + 1].event_timestamp if i + 1 < len(relevant) else completed_at
            span = _days_between(current.event_timestamp, next_ts)
            stage_durations[current.to_stage] = stage_durations.get(current.to_stage, 0.0) + span
            if current.to_stage in active_stages:
                active_days += span
            else:
                wait_days += span

    if created is not None:
        created_at_source = as_utc(created.event_timestamp)
    elif transitions:
        created_at_source = as_utc(transitions[0].event_timestamp)
    else:
        created_at_source = completed_at

    lead_time_days = _days_between(created_at_source, completed_at)
    cycle_time_days = _days_between(first_in_progress, completed_at) if first_in_progress else 0.0
    flow_efficiency_pct = (active_days / cycle_time_days) * 100 if cycle_time_days > 0 else 0.0

    latest = events[-1]
    values = {
        "delivery_stream_id": latest.delivery_stream_id,
        "ticket_type": latest.ticket_type,
        "story_points": latest.story_points,
        "created_at_source": created_at_source,
        "first_in_progress": first_in_progress,
        "completed_at": completed_at,
        "lead_time_days": lead_time_days,
        "cycle_time_days": cycle_time_days,
        "active_time_days": active_days,
        "wait_time_days": wait_days,
        "flow_efficiency_pct": flow_efficiency_pct,
        "stage_durations": stage_durations,
    }

    existing = await db.execute(select(WorkItemCycle).where(WorkItemCycle.ticket_id == ticket_id))
    cycle = existing.scalar_one_or_none()
    if cycle is None:
        cycle = WorkItemCycle(ticket_id=ticket_id, **values)
        db.add(cycle)
    else:
        for field, value in values.items():
            setattr(cycle, field, value)
    await db.flush()

    logger.info(
        "work_item_cycle_computed",
        ticket_id=ticket_id,
        cycle_time_days=round(cycle_time_days, 2),
        flow_efficiency_pct=round(flow_efficiency_pct, 1),
    )
    return cycle
