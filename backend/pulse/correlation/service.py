"""Cross-stream blocking correlation.

For each tech stream, count the blocked events that name it as the blocker
over the last 14 days, collect the delivery streams those tickets belong to,
and grade the situation by the impacted streams' average sprint confidence.
"""

import uuid
from collections.abc import Sequence
from datetime import datetime, timedelta

import numpy as np
import structlog
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.correlation.models import CrossStreamCorrelation
from pulse.events.models import WorkItemEvent
from pulse.forecast.service import compute_sprint_confidence
from pulse.models.base import utc_now
from pulse.platform_settings.schemas import Severity, SeverityThreshold, SeverityThresholdTable
from pulse.platform_settings.service import SEVERITY_THRESHOLDS_KEY, get_setting
from pulse.streams.service import active_tech_streams

logger = structlog.get_logger()

BLOCK_WINDOW_DAYS = 14

DEFAULT_THRESHOLDS = SeverityThresholdTable(
    rules=[
        SeverityThreshold(min_streams=3, max_confidence=60, severity="critical"),
        SeverityThreshold(min_streams=2, max_confidence=70, severity="high"),
        SeverityThreshold(min_streams=2, max_confidence=None, severity="medium"),
        SeverityThreshold(min_streams=1, max_confidence=70, severity="medium"),
        SeverityThreshold(min_streams=1, max_confidence=None, severity="low"),
    ]
)


class CorrelationResult(BaseModel):
    tech_stream_id: uuid.UUID
    block_count_14d: int
    impacted_delivery_stream_ids: list[uuid.UUID]
    avg_confidence_pct: float | None
    severity: Severity


def classify_severity(
    impacted_count: int,
    avg_confidence: float | None,
    thresholds: Sequence[SeverityThreshold],
) -> Severity:
    """First matching rule wins; ``low`` when none match, ``none`` when nothing is impacted."""
    if impacted_count == 0:
        return "none"
    confidence = avg_confidence if avg_confidence is not None else 0.0
    for rule in thresholds:
        if impacted_count < rule.min_streams:
            continue
        if rule.max_confidence is None or confidence < rule.max_confidence:
            return rule.severity
    return "low"


async def load_thresholds(db: AsyncSession) -> list[SeverityThreshold]:
    table = await get_setting(db, SEVERITY_THRESHOLDS_KEY, DEFAULT_THRESHOLDS)
    return table.rules


async def compute_for_tech_stream(
    db: AsyncSession,
    tech_stream_id: uuid.UUID,
    thresholds: Sequence[SeverityThreshold],
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> CorrelationResult:
    now = now or utc_now()
    since = now - timedelta(days=BLOCK_WINDOW_DAYS)

    result = await db.execute(
        select(WorkItemEvent.delivery_stream_id).where(
            WorkItemEvent.event_type == "blocked",
            WorkItemEvent.blocking_tech_stream_id == tech_stream_id,
            WorkItemEvent.event_timestamp >= since,
            WorkItemEvent.delivery_stream_id.is_not(None),
        )
    )
    blocked_streams = list(result.scalars().all())

    impacted: list[uuid.UUID] = []
    for stream_id in blocked_streams:
        if stream_id not in impacted:
            impacted.append(stream_id)

    if not impacted:
        return CorrelationResult(
            tech_stream_id=tech_stream_id,
            block_count_14d=0,
            impacted_delivery_stream_ids=[],
            avg_confidence_pct=None,
            severity="none",
        )

    confidences = [
        (await compute_sprint_confidence(db, stream_id, now, rng)).confidence for stream_id in impacted
    ]
    avg_confidence = sum(confidences) / len(confidences)

    return CorrelationResult(
        tech_stream_id=tech_stream_id,
        block_count_14d=len(blocked_streams),
        impacted_delivery_stream_ids=impacted,
        avg_confidence_pct=avg_confidence,
        severity=classify_severity(len(impacted), avg_confidence, thresholds),
    )


async def materialize_correlations(
    db: AsyncSession,
    now: datetime | None = None,
    rng: np.random.Generator | None = None,
) -> dict:
    """Upsert today's CrossStreamCorrelation row for every active tech stream.

    Thresholds are read once per run. A stream that fails is logged and
    counted; the others still get written.
    """
    now = now or utc_now()
    today = now.date()
    thresholds = await load_thresholds(db)
    tech_stream_ids = [ts.id for ts in await active_tech_streams(db)]

    written = 0
    failed = 0
    for tech_stream_id in tech_stream_ids:
        try:
            outcome = await compute_for_tech_stream(db, tech_stream_id, thresholds, now, rng)
            existing = await db.execute(
                select(CrossStreamCorrelation).where(
                    CrossStreamCorrelation.analysis_date == today,
                    CrossStreamCorrelation.tech_stream_id == tech_stream_id,
                )
            )
            row = existing.scalar_one_or_none()
            if row is None:
                row = CrossStreamCorrelation(analysis_date=today, tech_stream_id=tech_stream_id)
                db.add(row)
            row.impacted_delivery_streams = [str(s) for s in outcome.impacted_delivery_stream_ids]
            row.block_count_14d = outcome.block_count_14d
            row.avg_confidence_pct = outcome.avg_confidence_pct
            row.severity = outcome.severity
            row.computed_at = now
            await db.commit()
            written += 1
        except Exception:
            await db.rollback()
            failed += 1
            logger.exception("cross_stream_correlation_failed", tech_stream_id=str(tech_stream_id))

    logger.info("cross_stream_correlations_materialized", written=written, failed=failed, analysis_date=str(today))
    return {"written": written, "failed": failed}
