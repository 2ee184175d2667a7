import uuid
from datetime import date

from pydantic import BaseModel


class SprintConfidence(BaseModel):
    delivery_stream_id: uuid.UUID
    confidence: float
    sprint_id: uuid.UUID | None = None
    sprint_name: str | None = None
    remaining_count: int = 0
    working_days_remaining: int = 0
    sample_days: int = 0
    has_insufficient_data: bool


class HistogramBin(BaseModel):
    week_offset: int
    count: int


class CompletionForecast(BaseModel):
    delivery_stream_id: uuid.UUID
    is_low_confidence: bool
    weeks_of_data: int
    remaining_scope: int
    linear_projection_weeks: float | None = None
    p50_date: date | None = None
    p70_date: date | None = None
    p85_date: date | None = None
    p95_date: date | None = None
    distribution: list[HistogramBin] = []
    simulation_runs: int = 0
