"""Canonical event history.

Each table carries a unique constraint on its identifying key so that a
redelivered webhook can never produce a second row.
"""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Integer, String, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from pulse.models.base import Base, generate_uuid, utc_now


class WorkItemEvent(Base):
    __tablename__ = "work_item_events"
    __table_args__ = (
        UniqueConstraint("ticket_id", "event_type", "event_timestamp", name="uq_work_item_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="jira")
    ticket_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)  # created, transitioned, completed, blocked, unblocked
    ticket_type: Mapped[str | None] = mapped_column(String(50))
    from_status: Mapped[str | None] = mapped_column(String(200))
    to_status: Mapped[str | None] = mapped_column(String(200))
    from_stage: Mapped[str | None] = mapped_column(String(20))
    to_stage: Mapped[str | None] = mapped_column(String(20), index=True)
    priority: Mapped[str | None] = mapped_column(String(50))
    story_points: Mapped[float | None] = mapped_column(Float)
    labels: Mapped[list | None] = mapped_column(JSON)
    delivery_stream_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("delivery_streams.id"), index=True
    )
    blocking_tech_stream_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("tech_streams.id"), index=True
    )
    blocked_reason: Mapped[str | None] = mapped_column(Text)
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    received_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class DefectEvent(Base):
    __tablename__ = "defect_events"
    __table_args__ = (
        UniqueConstraint("ticket_id", "event_type", "event_timestamp", name="uq_defect_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="jira")
    ticket_id: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)  # logged
    delivery_stream_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("delivery_streams.id"))
    found_in_stage: Mapped[str] = mapped_column(String(30), default="unknown")
    introduced_in_stage: Mapped[str | None] = mapped_column(String(30))
    severity: Mapped[str | None] = mapped_column(String(20))
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class PrEvent(Base):
    __tablename__ = "pr_events"
    __table_args__ = (
        UniqueConstraint("repo_id", "pr_number", "event_type", "event_timestamp", name="uq_pr_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="github")
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    pr_number: Mapped[int] = mapped_column(Integer, nullable=False)
    repo_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("repositories.id"), nullable=False, index=True)
    github_org: Mapped[str] = mapped_column(String(200), default="")
    github_repo: Mapped[str] = mapped_column(String(200), default="")
    author_hash: Mapped[str | None] = mapped_column(String(64))
    reviewer_hash: Mapped[str | None] = mapped_column(String(64))
    review_state: Mapped[str | None] = mapped_column(String(30))
    branch_name: Mapped[str | None] = mapped_column(String(300))
    base_branch: Mapped[str | None] = mapped_column(String(300))
    linked_ticket_id: Mapped[str | None] = mapped_column(String(50), index=True)
    lines_added: Mapped[int | None] = mapped_column(Integer)
    lines_removed: Mapped[int | None] = mapped_column(Integer)
    files_changed: Mapped[int | None] = mapped_column(Integer)
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tech_streams.id"), nullable=False, index=True)
    delivery_stream_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("delivery_streams.id"))
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class CicdEvent(Base):
    __tablename__ = "cicd_events"
    __table_args__ = (
        UniqueConstraint("pipeline_id", "pipeline_run_id", "event_type", name="uq_cicd_event"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    source: Mapped[str] = mapped_column(String(20), nullable=False, default="github")
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tech_streams.id"), nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)  # build_completed, deploy_completed, deploy_failed
    pipeline_id: Mapped[str] = mapped_column(String(100), nullable=False)
    pipeline_run_id: Mapped[str] = mapped_column(String(100), nullable=False)
    environment: Mapped[str] = mapped_column(String(50), default="ci")
    status: Mapped[str] = mapped_column(String(30), default="unknown")
    commit_sha: Mapped[str | None] = mapped_column(String(64))
    event_timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)


class DeploymentRecord(Base):
    __tablename__ = "deployment_records"
    __table_args__ = (
        UniqueConstraint("tech_stream_id", "environment", "deployed_at", "commit_sha", name="uq_deployment_record"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tech_streams.id"), nullable=False, index=True)
    repo_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("repositories.id"))
    environment: Mapped[str] = mapped_column(String(50), nullable=False)
    status: Mapped[str] = mapped_column(String(30), nullable=False)  # success, failed, rolled_back, cancelled
    commit_sha: Mapped[str | None] = mapped_column(String(64))
    pipeline_id: Mapped[str | None] = mapped_column(String(100))
    trigger_type: Mapped[str | None] = mapped_column(String(50))
    linked_pr_number: Mapped[int | None] = mapped_column(Integer)
    linked_ticket_id: Mapped[str | None] = mapped_column(String(50))
    lead_time_hrs: Mapped[float | None] = mapped_column(Float)
    caused_incident: Mapped[bool] = mapped_column(Boolean, default=False)
    incident_id: Mapped[str | None] = mapped_column(String(100))
    deployed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)


class IncidentEvent(Base):
    __tablename__ = "incident_events"
    __table_args__ = (UniqueConstraint("incident_id", "event_type", name="uq_incident_event"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=generate_uuid)
    event_type: Mapped[str] = mapped_column(String(30), nullable=False)
    incident_id: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    service_name: Mapped[str] = mapped_column(String(200), nullable=False)
    severity: Mapped[str | None] = mapped_column(String(20))
    description: Mapped[str | None] = mapped_column(Text)
    tech_stream_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tech_streams.id"), nullable=False, index=True)
    related_deploy_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("deployment_records.id", ondelete="SET NULL")
    )
    resolved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    time_to_restore_min: Mapped[int | None] = mapped_column(Integer)
    occurred_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
