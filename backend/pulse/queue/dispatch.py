"""Route a queued payload to the normalizer for its source."""

from collections.abc import Awaitable, Callable
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from pulse.normalizers.deployment import normalize_deployment
from pulse.normalizers.github import normalize_github
from pulse.normalizers.incident import normalize_incident
from pulse.normalizers.jira import normalize_jira
from pulse.queue.models import EventSource, QueuedEvent

Normalizer = Callable[[AsyncSession, dict, str | None], Awaitable[Any]]

NORMALIZERS: dict[EventSource, Normalizer] = {
    EventSource.JIRA: normalize_jira,
    EventSource.GITHUB: normalize_github,
    EventSource.DEPLOYMENT: normalize_deployment,
    EventSource.INCIDENT: normalize_incident,
}


async def dispatch_event(db: AsyncSession, row: QueuedEvent) -> None:
    """Run the row's normalizer. Raises on failure so the queue can retry."""
    normalizer = NORMALIZERS[EventSource(row.event_source)]
    await normalizer(db, row.payload, row.event_type)
