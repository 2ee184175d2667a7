"""Map provider status names onto the fixed pipeline-stage vocabulary."""

import enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.streams.models import StatusMapping


class PipelineStage(str, enum.Enum):
    BACKLOG = "backlog"
    BA = "ba"
    DEV = "dev"
    CODE_REVIEW = "code_review"
    QA = "qa"
    UAT = "uat"
    DONE = "done"
    CANCELLED = "cancelled"


# Stages a ticket can still be "in flight" in (remaining scope / WIP)
OPEN_STAGES: tuple[str, ...] = (
    PipelineStage.BACKLOG.value,
    PipelineStage.BA.value,
    PipelineStage.DEV.value,
    PipelineStage.CODE_REVIEW.value,
    PipelineStage.QA.value,
    PipelineStage.UAT.value,
)


def project_key_for(ticket_id: str) -> str:
    """``PAY-123`` -> ``PAY``."""
    return ticket_id.split("-", 1)[0]


async def resolve_stage(
    db: AsyncSession,
    project_key: str,
    status_name: str | None,
) -> PipelineStage | None:
    """Look up the pipeline stage for a provider status.

    Unmapped statuses resolve to None; callers record them rather than drop them.
    """
    if not status_name:
        return None

    result = await db.execute(
        select(StatusMapping.pipeline_stage).where(
            StatusMapping.project_key == project_key,
            StatusMapping.status_name == status_name,
        )
    )
    stage = result.scalars().first()
    if stage is None:
        return None
    try:
        return PipelineStage(stage)
    except ValueError:
        return None


async def load_active_stages(db: AsyncSession, project_key: str) -> set[str]:
    """Stages flagged as active work for a project."""
    result = await db.execute(
        select(StatusMapping.pipeline_stage).where(
            StatusMapping.project_key == project_key,
            StatusMapping.is_active_work == True,  # noqa: E712
        )
    )
    return set(result.scalars().all())
