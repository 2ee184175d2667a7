"""Reference data maintained by the admin surface; read-only to the pipeline."""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pulse.models.base import Base, TimestampMixin, generate_uuid


class DeliveryStream(TimestampMixin, Base):
    __tablename__ = "delivery_streams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class TechStream(TimestampMixin, Base):
    __tablename__ = "tech_streams"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    display_name: Mapped[str | None] = mapped_column(String(200))
    github_org: Mapped[str | None] = mapped_column(String(200))
    github_install_id: Mapped[str | None] = mapped_column(String(50), unique=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class Repository(TimestampMixin, Base):
    __tablename__ = "repositories"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("tech_streams.id"), nullable=False, index=True
    )
    github_org: Mapped[str] = mapped_column(String(200), nullable=False)
    github_repo_name: Mapped[str] = mapped_column(String(200), nullable=False)
    full_name: Mapped[str] = mapped_column(String(400), nullable=False, unique=True)
    default_branch: Mapped[str] = mapped_column(String(200), default="main")
    deploy_target: Mapped[str | None] = mapped_column(String(200), index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)


class StatusMapping(Base):
    __tablename__ = "status_mappings"
    __table_args__ = (UniqueConstraint("project_key", "status_name", name="uq_status_mapping"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    project_key: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    status_name: Mapped[str] = mapped_column(String(200), nullable=False)
    pipeline_stage: Mapped[str] = mapped_column(String(20), nullable=False)
    is_active_work: Mapped[bool] = mapped_column(Boolean, default=False)
    display_order: Mapped[int] = mapped_column(Integer, default=0)


class Sprint(Base):
    __tablename__ = "sprints"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    delivery_stream_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("delivery_streams.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    state: Mapped[str] = mapped_column(String(20), default="future")  # future, active, closed
    start_date: Mapped[date | None] = mapped_column(Date)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)


class SprintSnapshot(Base):
    __tablename__ = "sprint_snapshots"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    sprint_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sprints.id"), nullable=False, index=True)
    snapshot_date: Mapped[date] = mapped_column(Date, nullable=False)
    committed_count: Mapped[int] = mapped_column(Integer, default=0)
    completed_count: Mapped[int] = mapped_column(Integer, default=0)
    remaining_count: Mapped[int] = mapped_column(Integer, default=0)
    captured_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class PublicHoliday(Base):
    __tablename__ = "public_holidays"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    holiday_date: Mapped[date] = mapped_column(Date, nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
