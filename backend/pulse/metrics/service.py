"""Read-side aggregates over the materialised cycle tables and event history."""

import uuid
from collections import Counter
from datetime import datetime, timedelta

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.correlation.deploy_incident import PRODUCTION
from pulse.events.models import DefectEvent, DeploymentRecord, IncidentEvent, PrEvent, WorkItemEvent
from pulse.metrics.models import PrCycle, WorkItemCycle
from pulse.metrics.schemas import (
    DataQuality,
    DefectEscapeRate,
    DoraMetrics,
    FlowEfficiencySummary,
    PercentileSummary,
    PrReviewTurnaround,
    QualityWarning,
    ReviewerConcentration,
    StagePairCount,
)
from pulse.metrics.stats import percentile, summarize
from pulse.models.base import utc_now

logger = structlog.get_logger()

DEFAULT_WINDOW_DAYS = 30
MIN_CONTRIBUTORS = 6
CONCENTRATION_WARNING_PCT = 50

# Defects found here got past development and QA
ESCAPE_STAGES = frozenset({"uat", "production"})

# Rates (percent) below which data_quality emits a warning
QUALITY_TARGETS: dict[str, float] = {
    "pr_linkage_rate": 80,
    "ticket_tagging_rate": 90,
    "deployment_traceability_rate": 80,
    "status_mapping_rate": 95,
}


async def _completed_cycles(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID | None,
    window_days: int,
    now: datetime | None,
) -> list[WorkItemCycle]:
    since = (now or utc_now()) - timedelta(days=window_days)
    query = select(WorkItemCycle).where(WorkItemCycle.completed_at >= since)
    if delivery_stream_id is not None:
        query = query.where(WorkItemCycle.delivery_stream_id == delivery_stream_id)
    result = await db.execute(query)
    return list(result.scalars().all())


async def cycle_time_summary(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
) -> PercentileSummary:
    cycles = await _completed_cycles(db, delivery_stream_id, window_days, now)
    return PercentileSummary(**summarize([c.cycle_time_days for c in cycles]))


async def flow_efficiency_summary(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
) -> FlowEfficiencySummary:
    cycles = await _completed_cycles(db, delivery_stream_id, window_days, now)
    if not cycles:
        return FlowEfficiencySummary(count=0, avg_flow_efficiency_pct=0, avg_stage_durations_days={})

    totals: dict[str, float] = {}
    for cycle in cycles:
        for stage, days in (cycle.stage_durations or {}).items():
            totals[stage] = totals.get(stage, 0.0) + days

    return FlowEfficiencySummary(
        count=len(cycles),
        avg_flow_efficiency_pct=round(sum(c.flow_efficiency_pct for c in cycles) / len(cycles), 2),
        avg_stage_durations_days={stage: round(total / len(cycles), 2) for stage, total in totals.items()},
    )


async def wip_by_stage(db: AsyncSession, delivery_stream_id: uuid.UUID | None = None) -> dict[str, int]:
    """Open tickets counted by the stage their latest transition put them in."""
    completed = select(WorkItemEvent.ticket_id).where(WorkItemEvent.event_type == "completed")
    result = await db.execute(
        select(
            WorkItemEvent.ticket_id,
            WorkItemEvent.to_stage,
            WorkItemEvent.delivery_stream_id,
        )
        .where(
            WorkItemEvent.event_type == "transitioned",
            WorkItemEvent.ticket_id.not_in(completed),
        )
        .order_by(WorkItemEvent.event_timestamp.asc())
    )

    latest: dict[str, tuple[str | None, uuid.UUID | None]] = {}
    for ticket_id, to_stage, stream_id in result.all():
        latest[ticket_id] = (to_stage, stream_id)

    counts: Counter[str] = Counter()
    for to_stage, stream_id in latest.values():
        if to_stage is None:
            continue
        if delivery_stream_id is not None and stream_id != delivery_stream_id:
            continue
        counts[to_stage] += 1
    return dict(counts)


async def pr_review_turnaround(
    db: AsyncSession,
    tech_stream_id: uuid.UUID | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
    min_contributors: int = MIN_CONTRIBUTORS,
) -> PrReviewTurnaround:
    """Review speed for PRs merged in the window.

    Per-reviewer concentration is withheld when fewer than *min_contributors*
    distinct people were active, so small teams are not singled out.
    """
    since = (now or utc_now()) - timedelta(days=window_days)

    cycle_query = select(PrCycle).where(PrCycle.merged_at >= since)
    event_query = select(PrEvent).where(
        PrEvent.event_timestamp >= since,
        PrEvent.event_type.in_(("opened", "review_submitted")),
    )
    if tech_stream_id is not None:
        cycle_query = cycle_query.where(PrCycle.tech_stream_id == tech_stream_id)
        event_query = event_query.where(PrEvent.tech_stream_id == tech_stream_id)

    cycles = list((await db.execute(cycle_query)).scalars().all())
    events = list((await db.execute(event_query)).scalars().all())

    first_review = [c.time_to_first_review_hrs for c in cycles if c.time_to_first_review_hrs is not None]
    to_merge = [c.time_to_merge_hrs for c in cycles if c.time_to_merge_hrs is not None]

    opened = [e for e in events if e.event_type == "opened"]
    reviews = [e for e in events if e.event_type == "review_submitted" and e.reviewer_hash]

    contributors = {e.reviewer_hash for e in reviews} | {e.author_hash for e in opened if e.author_hash}
    is_suppressed = len(contributors) < min_contributors

    concentration: list[ReviewerConcentration] = []
    if not is_suppressed and reviews:
        for reviewer_hash, count in Counter(e.reviewer_hash for e in reviews).most_common():
            percentage = count / len(reviews) * 100
            concentration.append(
                ReviewerConcentration(
                    reviewer_hash=reviewer_hash,
                    review_count=count,
                    percentage=round(percentage, 2),
                    is_concerning=percentage > CONCENTRATION_WARNING_PCT,
                )
            )

    linked = sum(1 for e in opened if e.linked_ticket_id)
    return PrReviewTurnaround(
        time_to_first_review_hrs=PercentileSummary(**summarize(first_review)),
        time_to_merge_hrs=PercentileSummary(**summarize(to_merge)),
        reviewer_concentration=concentration,
        pr_to_ticket_linkage_rate=round(linked / len(opened) * 100, 2) if opened else 0.0,
        is_suppressed=is_suppressed,
    )


async def dora_metrics(
    db: AsyncSession,
    tech_stream_id: uuid.UUID,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
) -> DoraMetrics:
    """DORA four keys for one tech stream over its production deploys in the window."""
    since = (now or utc_now()) - timedelta(days=window_days)

    deploy_result = await db.execute(
        select(DeploymentRecord).where(
            DeploymentRecord.tech_stream_id == tech_stream_id,
            DeploymentRecord.environment == PRODUCTION,
            DeploymentRecord.deployed_at >= since,
        )
    )
    deploys = list(deploy_result.scalars().all())

    restore_result = await db.execute(
        select(IncidentEvent.time_to_restore_min).where(
            IncidentEvent.tech_stream_id == tech_stream_id,
            IncidentEvent.occurred_at >= since,
            IncidentEvent.time_to_restore_min.is_not(None),
        )
    )
    restore_minutes = sorted(restore_result.scalars().all())
    lead_times = sorted(d.lead_time_hrs for d in deploys if d.lead_time_hrs is not None)

    failed = sum(1 for d in deploys if d.caused_incident)
    return DoraMetrics(
        deployment_count=len(deploys),
        deployment_frequency_per_week=round(len(deploys) / (window_days / 7), 2),
        change_failure_rate_pct=round(failed / len(deploys) * 100, 2) if deploys else 0.0,
        time_to_restore_median_min=round(percentile(restore_minutes, 50), 2),
        time_to_restore_mean_min=(
            round(sum(restore_minutes) / len(restore_minutes), 2) if restore_minutes else 0.0
        ),
        lead_time_p50_hrs=round(percentile(lead_times, 50), 2) if lead_times else None,
        lead_time_p85_hrs=round(percentile(lead_times, 85), 2) if lead_times else None,
    )


async def defect_escape_rate(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID | None = None,
    window_days: int = DEFAULT_WINDOW_DAYS,
    now: datetime | None = None,
) -> DefectEscapeRate:
    """Share of defects found after QA, judged on each ticket's latest defect event.

    The introduced/found matrix only counts defects with a known introduction stage.
    """
    since = (now or utc_now()) - timedelta(days=window_days)
    query = select(DefectEvent).where(DefectEvent.event_timestamp >= since)
    if delivery_stream_id is not None:
        query = query.where(DefectEvent.delivery_stream_id == delivery_stream_id)
    events = (await db.execute(query.order_by(DefectEvent.event_timestamp.asc()))).scalars().all()

    latest: dict[str, DefectEvent] = {}
    for event in events:
        latest[event.ticket_id] = event
    defects = list(latest.values())
    if not defects:
        return DefectEscapeRate(
            count=0, escape_rate_pct=0.0, unattributed_count=0, unattributed_pct=0.0, stage_pair_matrix=[]
        )

    escaped = sum(1 for d in defects if d.found_in_stage in ESCAPE_STAGES)
    unattributed = sum(1 for d in defects if d.introduced_in_stage is None)
    pairs = Counter(
        (d.introduced_in_stage, d.found_in_stage) for d in defects if d.introduced_in_stage is not None
    )

    return DefectEscapeRate(
        count=len(defects),
        escape_rate_pct=round(escaped / len(defects) * 100, 2),
        unattributed_count=unattributed,
        unattributed_pct=round(unattributed / len(defects) * 100, 2),
        stage_pair_matrix=[
            StagePairCount(introduced_in=introduced, found_in=found, count=n)
            for (introduced, found), n in pairs.most_common()
        ],
    )


async def _rate(db: AsyncSession, total_query, matched_query) -> tuple[int, float]:
    total = (await db.execute(total_query)).scalar_one()
    matched = (await db.execute(matched_query)).scalar_one()
    return total, (matched / total * 100 if total else 0.0)


async def data_quality(db: AsyncSession) -> DataQuality:
    """Coverage of the joins the dashboards rely on, with warnings below target."""
    pr_total, pr_rate = await _rate(
        db,
        select(func.count()).select_from(PrEvent),
        select(func.count()).select_from(PrEvent).where(PrEvent.linked_ticket_id.is_not(None)),
    )
    ticket_total, ticket_rate = await _rate(
        db,
        select(func.count()).select_from(WorkItemEvent),
        select(func.count()).select_from(WorkItemEvent).where(WorkItemEvent.delivery_stream_id.is_not(None)),
    )
    production = DeploymentRecord.environment == PRODUCTION
    deploy_total, deploy_rate = await _rate(
        db,
        select(func.count()).select_from(DeploymentRecord).where(production),
        select(func.count())
        .select_from(DeploymentRecord)
        .where(production, DeploymentRecord.linked_ticket_id.is_not(None)),
    )
    transitions = (WorkItemEvent.event_type == "transitioned", WorkItemEvent.to_status.is_not(None))
    transition_total, mapping_rate = await _rate(
        db,
        select(func.count()).select_from(WorkItemEvent).where(*transitions),
        select(func.count()).select_from(WorkItemEvent).where(*transitions, WorkItemEvent.to_stage.is_not(None)),
    )

    observed = {
        "pr_linkage_rate": (pr_total, pr_rate),
        "ticket_tagging_rate": (ticket_total, ticket_rate),
        "deployment_traceability_rate": (deploy_total, deploy_rate),
        "status_mapping_rate": (transition_total, mapping_rate),
    }
    warnings = [
        QualityWarning(metric=metric, rate=round(rate, 2), target=QUALITY_TARGETS[metric])
        for metric, (total, rate) in observed.items()
        if total > 0 and rate < QUALITY_TARGETS[metric]
    ]
    if warnings:
        logger.info("data_quality_below_target", metrics=[w.metric for w in warnings])

    return DataQuality(
        pr_linkage_rate=round(pr_rate, 2),
        pr_total=pr_total,
        ticket_tagging_rate=round(ticket_rate, 2),
        ticket_total=ticket_total,
        deployment_traceability_rate=round(deploy_rate, 2),
        deployment_total=deploy_total,
        status_mapping_rate=round(mapping_rate, 2),
        transition_total=transition_total,
        warnings=warnings,
    )
