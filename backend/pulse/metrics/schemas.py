from uuid import UUID

from pydantic import BaseModel


class PercentileSummary(BaseModel):
    count: int
    p50: float
    p85: float
    p95: float


class FlowEfficiencySummary(BaseModel):
    count: int
    avg_flow_efficiency_pct: float
    avg_stage_durations_days: dict[str, float]


class ReviewerConcentration(BaseModel):
    reviewer_hash: str
    review_count: int
    percentage: float
    is_concerning: bool


class PrReviewTurnaround(BaseModel):
    time_to_first_review_hrs: PercentileSummary
    time_to_merge_hrs: PercentileSummary
    reviewer_concentration: list[ReviewerConcentration]
    pr_to_ticket_linkage_rate: float
    is_suppressed: bool


class QualityWarning(BaseModel):
    metric: str
    rate: float
    target: float


class DataQuality(BaseModel):
    pr_linkage_rate: float
    pr_total: int
    ticket_tagging_rate: float
    ticket_total: int
    deployment_traceability_rate: float
    deployment_total: int
    status_mapping_rate: float
    transition_total: int
    warnings: list[QualityWarning]


class QueueDepth(BaseModel):
    pending: int
    dead_lettered: int


class DoraMetrics(BaseModel):
    deployment_count: int
    deployment_frequency_per_week: float
    change_failure_rate_pct: float
    time_to_restore_median_min: float
    time_to_restore_mean_min: float
    lead_time_p50_hrs: float | None
    lead_time_p85_hrs: float | None


class StagePairCount(BaseModel):
    introduced_in: str
    found_in: str
    count: int


class DefectEscapeRate(BaseModel):
    count: int
    escape_rate_pct: float
    unattributed_count: int
    unattributed_pct: float
    stage_pair_matrix: list[StagePairCount]


class RequeueRequest(BaseModel):
    ids: list[UUID]


class RequeueResult(BaseModel):
    requeued: int
