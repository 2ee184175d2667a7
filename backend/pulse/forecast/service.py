"""Sprint confidence and completion-date forecasts per delivery stream."""

import uuid
from collections import Counter
from datetime import date, datetime, timedelta

import numpy as np
import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import WorkItemEvent
from pulse.forecast.business_days import working_days_remaining
from pulse.forecast.models import ForecastSnapshot
from pulse.forecast.monte_carlo import (
    FORECAST_SIMULATION_RUNS,
    SPRINT_SIMULATION_RUNS,
    histogram,
    sprint_success_rate,
    weeks_to_complete,
)
from pulse.forecast.schemas import CompletionForecast, HistogramBin, SprintConfidence
from pulse.metrics.models import WorkItemCycle
from pulse.metrics.stats import percentile
from pulse.models.base import as_utc, utc_now
from pulse.streams.models import PublicHoliday, Sprint, SprintSnapshot
from pulse.streams.service import active_delivery_streams
from pulse.streams.stage_mapping import OPEN_STAGES

logger = structlog.get_logger()

THROUGHPUT_WINDOW_WEEKS = 12
LOW_CONFIDENCE_WEEKS_THRESHOLD = 6


async def _completion_times(db: AsyncSession, delivery_stream_id: uuid.UUID, since: datetime) -> list[datetime]:
    result = await db.execute(
        select(WorkItemCycle.completed_at)
        .where(
            WorkItemCycle.delivery_stream_id == delivery_stream_id,
            WorkItemCycle.completed_at >= since,
        )
        .order_by(WorkItemCycle.completed_at.asc())
    )
    return [as_utc(ts) for ts in result.scalars().all()]


async def daily_throughput(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID,
    now: datetime | None = None,
    window_weeks: int = THROUGHPUT_WINDOW_WEEKS,
) -> list[int]:
    """Completed-ticket counts per calendar day, for days with at least one completion."""
    now = now or utc_now()
    completions = await _completion_times(db, delivery_stream_id, now - timedelta(weeks=window_weeks))
    by_day = Counter(ts.date() for ts in completions)
    return [by_day[day] for day in sorted(by_day)]


async def weekly_throughput(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID,
    now: datetime | None = None,
    window_weeks: int = THROUGHPUT_WINDOW_WEEKS,
) -> list[int]:
    """Completed-ticket counts per ISO week (Monday start), for weeks with any completion."""
    now = now or utc_now()
    completions = await _completion_times(db, delivery_stream_id, now - timedelta(weeks=window_weeks))
    by_week = Counter(ts.date() - timedelta(days=ts.weekday()) for ts in completions)
    return [by_week[week] for week in sorted(by_week)]


async def compute_sprint_confidence(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> SprintConfidence:
    """Chance (0-100) that the active sprint's remaining tickets finish by its end date."""
    now = now or utc_now()

    result = await db.execute(
        select(Sprint)
        .where(Sprint.delivery_stream_id == delivery_stream_id, Sprint.state == "active")
        .order_by(Sprint.end_date.desc())
        .limit(1)
    )
    sprint = result.scalar_one_or_none()
    if sprint is None:
        return SprintConfidence(
            delivery_stream_id=delivery_stream_id,
            confidence=0,
            has_insufficient_data=True,
        )

    result = await db.execute(
        select(SprintSnapshot.remaining_count)
        .where(SprintSnapshot.sprint_id == sprint.id)
        .order_by(SprintSnapshot.snapshot_date.desc())
        .limit(1)
    )
    remaining = result.scalar_one_or_none() or 0

    today = now.date()
    result = await db.execute(
        select(PublicHoliday.holiday_date).where(
            PublicHoliday.holiday_date > today,
            PublicHoliday.holiday_date <= sprint.end_date,
        )
    )
    working_days = working_days_remaining(today, sprint.end_date, result.scalars().all())

    samples = await daily_throughput(db, delivery_stream_id, now)
    if not samples:
        confidence = 0.0
    else:
        confidence = sprint_success_rate(samples, remaining, working_days, SPRINT_SIMULATION_RUNS, rng)

    return SprintConfidence(
        delivery_stream_id=delivery_stream_id,
        confidence=confidence,
        sprint_id=sprint.id,
        sprint_name=sprint.name,
        remaining_count=remaining,
        working_days_remaining=working_days,
        sample_days=len(samples),
        has_insufficient_data=not samples,
    )


async def remaining_scope(db: AsyncSession, delivery_stream_id: uuid.UUID) -> int:
    """Tickets whose most recent stage transition left them in an open stage."""
    result = await db.execute(
        select(WorkItemEvent.ticket_id, WorkItemEvent.to_stage)
        .where(
            WorkItemEvent.delivery_stream_id == delivery_stream_id,
            WorkItemEvent.event_type == "transitioned",
            WorkItemEvent.to_stage.is_not(None),
        )
        .order_by(WorkItemEvent.event_timestamp.asc())
    )
    latest: dict[str, str] = {}
    for ticket_id, to_stage in result.all():
        latest[ticket_id] = to_stage
    return sum(1 for stage in latest.values() if stage in OPEN_STAGES)


async def compute_forecast(
    db: AsyncSession,
    delivery_stream_id: uuid.UUID,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
    window_weeks: int = THROUGHPUT_WINDOW_WEEKS,
) -> CompletionForecast:
    """Monte Carlo completion dates for the stream's remaining scope.

    With fewer than LOW_CONFIDENCE_WEEKS_THRESHOLD weeks of history only a
    straight-line projection is offered.
    """
    now = now or utc_now()
    scope = await remaining_scope(db, delivery_stream_id)
    weekly = await weekly_throughput(db, delivery_stream_id, now, window_weeks)

    if len(weekly) < LOW_CONFIDENCE_WEEKS_THRESHOLD:
        average = sum(weekly) / len(weekly) if weekly else 0
        return CompletionForecast(
            delivery_stream_id=delivery_stream_id,
            is_low_confidence=True,
            weeks_of_data=len(weekly),
            remaining_scope=scope,
            linear_projection_weeks=scope / average if average > 0 and scope > 0 else None,
        )

    weeks = np.sort(weeks_to_complete(weekly, scope, FORECAST_SIMULATION_RUNS, rng=rng))
    ordered = weeks.tolist()
    today = now.date()

    def offset(p: float) -> date:
        return today + timedelta(weeks=percentile(ordered, p))

    return CompletionForecast(
        delivery_stream_id=delivery_stream_id,
        is_low_confidence=False,
        weeks_of_data=len(weekly),
        remaining_scope=scope,
        p50_date=offset(50),
        p70_date=offset(70),
        p85_date=offset(85),
        p95_date=offset(95),
        distribution=[HistogramBin(**b) for b in histogram(ordered)],
        simulation_runs=FORECAST_SIMULATION_RUNS,
    )


async def materialize_forecasts(
    db: AsyncSession,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> int:
    """Write today's ForecastSnapshot for every active delivery stream.

    Streams that already have a row for today are left alone. Returns the
    number of snapshots written.
    """
    now = now or utc_now()
    today = now.date()
    written = 0

    # Ids up front: a rollback below expires every loaded instance
    stream_ids = [stream.id for stream in await active_delivery_streams(db)]

    for stream_id in stream_ids:
        existing = await db.execute(
            select(ForecastSnapshot.id).where(
                ForecastSnapshot.delivery_stream_id == stream_id,
                ForecastSnapshot.forecast_date == today,
            )
        )
        if existing.scalar_one_or_none() is not None:
            continue

        try:
            forecast = await compute_forecast(db, stream_id, now, rng)
            db.add(
                ForecastSnapshot(
                    delivery_stream_id=stream_id,
                    forecast_date=today,
                    scope_item_count=forecast.remaining_scope,
                    throughput_samples=forecast.weeks_of_data,
                    simulation_runs=forecast.simulation_runs,
                    is_low_confidence=forecast.is_low_confidence,
                    linear_projection_weeks=forecast.linear_projection_weeks,
                    p50_completion_date=forecast.p50_date,
                    p70_completion_date=forecast.p70_date,
                    p85_completion_date=forecast.p85_date,
                    p95_completion_date=forecast.p95_date,
                    distribution_data=[b.model_dump() for b in forecast.distribution],
                    computed_at=now,
                )
            )
            await db.commit()
            written += 1
        except IntegrityError:
            await db.rollback()
            logger.info("forecast_snapshot_exists", delivery_stream_id=str(stream_id), forecast_date=str(today))
        except Exception:
            await db.rollback()
            logger.exception("forecast_materialize_failed", delivery_stream_id=str(stream_id))

    logger.info("forecasts_materialized", written=written, forecast_date=str(today))
    return written
