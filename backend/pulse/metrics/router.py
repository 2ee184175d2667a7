from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.database import get_db
from pulse.forecast.schemas import CompletionForecast, SprintConfidence
from pulse.forecast.service import compute_forecast, compute_sprint_confidence
from pulse.metrics.schemas import (
    DataQuality,
    DefectEscapeRate,
    DoraMetrics,
    FlowEfficiencySummary,
    PercentileSummary,
    PrReviewTurnaround,
    QueueDepth,
    RequeueRequest,
    RequeueResult,
)
from pulse.metrics.service import (
    cycle_time_summary,
    data_quality,
    defect_escape_rate,
    dora_metrics,
    flow_efficiency_summary,
    pr_review_turnaround,
    wip_by_stage,
)
from pulse.queue.service import count_dead_lettered, count_pending, requeue_dead_lettered

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/wip", response_model=dict[str, int])
async def wip(
    delivery_stream_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    return await wip_by_stage(db, delivery_stream_id)


@router.get("/cycle-time", response_model=PercentileSummary)
async def cycle_time(
    delivery_stream_id: UUID | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await cycle_time_summary(db, delivery_stream_id, days)


@router.get("/flow-efficiency", response_model=FlowEfficiencySummary)
async def flow_efficiency(
    delivery_stream_id: UUID | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await flow_efficiency_summary(db, delivery_stream_id, days)


@router.get("/pr-review-turnaround", response_model=PrReviewTurnaround)
async def review_turnaround(
    tech_stream_id: UUID | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await pr_review_turnaround(db, tech_stream_id, days)


@router.get("/sprint-confidence", response_model=SprintConfidence)
async def sprint_confidence(
    delivery_stream_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await compute_sprint_confidence(db, delivery_stream_id)


@router.get("/forecast", response_model=CompletionForecast)
async def forecast(
    delivery_stream_id: UUID = Query(...),
    db: AsyncSession = Depends(get_db),
):
    return await compute_forecast(db, delivery_stream_id)


@router.get("/dora", response_model=DoraMetrics)
async def dora(
    tech_stream_id: UUID = Query(...),
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await dora_metrics(db, tech_stream_id, days)


@router.get("/defect-escape", response_model=DefectEscapeRate)
async def defect_escape(
    delivery_stream_id: UUID | None = Query(None),
    days: int = Query(30, ge=1, le=365),
    db: AsyncSession = Depends(get_db),
):
    return await defect_escape_rate(db, delivery_stream_id, days)


@router.get("/data-quality", response_model=DataQuality)
async def quality(db: AsyncSession = Depends(get_db)):
    return await data_quality(db)


@router.get("/queue", response_model=QueueDepth)
async def queue_depth(db: AsyncSession = Depends(get_db)):
    return QueueDepth(pending=await count_pending(db), dead_lettered=await count_dead_lettered(db))


@router.post("/queue/requeue", response_model=RequeueResult)
async def requeue(data: RequeueRequest, db: AsyncSession = Depends(get_db)):
    """Give dead-lettered rows a fresh attempt budget. Other ids are ignored."""
    return RequeueResult(requeued=await requeue_dead_lettered(db, data.ids))
