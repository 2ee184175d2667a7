import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pulse.models.base import Base, generate_uuid, utc_now


class EventSource(str, enum.Enum):
    JIRA = "jira"
    GITHUB = "github"
    DEPLOYMENT = "deployment"
    INCIDENT = "incident"


class QueueStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    DEAD_LETTERED = "dead_lettered"


class QueuedEvent(Base):
    """Inbound webhook payload awaiting dispatch. No uniqueness: redeliveries are deduped downstream."""

    __tablename__ = "event_queue"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    event_source: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    event_type: Mapped[str | None] = mapped_column(String(100))
    signature: Mapped[str | None] = mapped_column(String(200))
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default=QueueStatus.PENDING.value, index=True)
    attempt_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_error: Mapped[str | None] = mapped_column(Text)
    enqueued_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=utc_now, index=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
