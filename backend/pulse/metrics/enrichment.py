"""Delivery-stream attribution for pull requests via their linked ticket.

A PR only knows its ticket id; the delivery stream lives on the ticket's
work-item events. PRs opened before the ticket was tagged are picked up by
the batch backfill.
"""

import uuid

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.events.models import PrEvent, WorkItemEvent
from pulse.metrics.models import PrCycle

logger = structlog.get_logger()


async def delivery_stream_for_ticket(db: AsyncSession, ticket_id: str | None) -> uuid.UUID | None:
    """Stream from the ticket's earliest tagged work-item event."""
    if not ticket_id:
        return None
    return await db.scalar(
        select(WorkItemEvent.delivery_stream_id)
        .where(
            WorkItemEvent.ticket_id == ticket_id,
            WorkItemEvent.delivery_stream_id.is_not(None),
        )
        .order_by(WorkItemEvent.event_timestamp.asc())
        .limit(1)
    )


async def enrich_by_ticket_id(db: AsyncSession, ticket_id: str) -> int:
    """Fill the stream on untagged PR events and cycles linked to *ticket_id*.

    Returns the number of PR events updated. Only flushes; the caller commits.
    """
    delivery_stream_id = await delivery_stream_for_ticket(db, ticket_id)
    if delivery_stream_id is None:
        return 0

    result = await db.execute(
        update(PrEvent)
        .where(PrEvent.linked_ticket_id == ticket_id, PrEvent.delivery_stream_id.is_(None))
        .values(delivery_stream_id=delivery_stream_id)
    )
    await db.execute(
        update(PrCycle)
        .where(PrCycle.linked_ticket_id == ticket_id, PrCycle.delivery_stream_id.is_(None))
        .values(delivery_stream_id=delivery_stream_id)
    )
    return result.rowcount


async def enrich_pr_delivery_streams(db: AsyncSession) -> int:
    """Backfill every linked, untagged PR. Returns the total PR events updated."""
    result = await db.execute(
        select(PrEvent.linked_ticket_id)
        .where(PrEvent.linked_ticket_id.is_not(None), PrEvent.delivery_stream_id.is_(None))
        .distinct()
    )
    ticket_ids = list(result.scalars().all())

    total = 0
    for ticket_id in ticket_ids:
        try:
            async with db.begin_nested():
                total += await enrich_by_ticket_id(db, ticket_id)
        except SQLAlchemyError:
            logger.exception("pr_enrichment_failed", ticket_id=ticket_id)
    await db.commit()

    logger.info("pr_delivery_streams_enriched", tickets=len(ticket_ids), updated=total)
    return total
