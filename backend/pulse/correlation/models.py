import uuid
from datetime import date, datetime

from sqlalchemy import JSON, Date, DateTime, Float, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pulse.models.base import Base, generate_uuid, utc_now


class CrossStreamCorrelation(Base):
    """How much a tech stream is blocking delivery streams, recomputed per day."""

    __tablename__ = "cross_stream_correlations"
    __table_args__ = (
        UniqueConstraint("analysis_date", "tech_stream_id", name="uq_cross_stream_correlation"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    analysis_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tech_streams.id"), nullable=False)
    impacted_delivery_streams: Mapped[list] = mapped_column(JSON, default=list)
    block_count_14d: Mapped[int] = mapped_column(Integer, default=0)
    avg_confidence_pct: Mapped[float | None] = mapped_column(Float)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # none, low, medium, high, critical
    computed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
