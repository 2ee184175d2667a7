"""Durable intake queue for inbound webhook payloads.

Webhook receivers only ``enqueue``; a scheduled job drains pending rows with
``process_pending``. Rows are handled one at a time. Each dispatch runs inside
a SAVEPOINT so a failing normalizer leaves no partial canonical rows behind,
and a failure never stops the rest of the batch.

Dispatching rows concurrently is only safe because every canonical insert is
guarded by a unique constraint and wrapped in its own savepoint (see
``pulse.normalizers.common.insert_once``).
"""

import uuid
from collections.abc import Awaitable, Callable
from typing import TypedDict

import structlog
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.models.base import utc_now
from pulse.queue.models import EventSource, QueuedEvent, QueueStatus

logger = structlog.get_logger()

MAX_ATTEMPTS = 3
DEFAULT_BATCH_LIMIT = 100

Dispatcher = Callable[[AsyncSession, QueuedEvent], Awaitable[None]]


class DrainResult(TypedDict):
    processed: int
    failed: int
    dead_lettered: int


async def enqueue(
    db: AsyncSession,
    source: EventSource | str,
    payload: dict,
    event_type: str | None = None,
    signature: str | None = None,
) -> QueuedEvent:
    """Persist an inbound payload for later dispatch. Never blocks on processing."""
    row = QueuedEvent(
        event_source=EventSource(source).value,
        event_type=event_type,
        signature=signature,
        payload=payload,
        status=QueueStatus.PENDING.value,
        attempt_count=0,
        last_error=None,
        enqueued_at=utc_now(),
        processed_at=None,
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)

    logger.info(
        "event_enqueued",
        queue_id=str(row.id),
        source=row.event_source,
        event_type=event_type,
        signed=signature is not None,
    )
    return row


async def process_pending(
    db: AsyncSession,
    limit: int = DEFAULT_BATCH_LIMIT,
    dispatch: Dispatcher | None = None,
) -> DrainResult:
    """Dispatch up to *limit* pending rows, oldest first.

    Success marks the row completed. Failure bumps ``attempt_count``; the row
    stays pending for the next run until it reaches MAX_ATTEMPTS, at which
    point it is dead-lettered for good.
    """
    if dispatch is None:
        from pulse.queue.dispatch import dispatch_event

        dispatch = dispatch_event

    result = await db.execute(
        select(QueuedEvent)
        .where(QueuedEvent.status == QueueStatus.PENDING.value)
        .order_by(QueuedEvent.enqueued_at.asc())
        .limit(limit)
    )
    rows = list(result.scalars().all())

    counts: DrainResult = {"processed": 0, "failed": 0, "dead_lettered": 0}

    for row in rows:
        row_id = row.id
        attempts = row.attempt_count
        source = row.event_source
        try:
            async with db.begin_nested():
                await dispatch(db, row)
        except Exception as exc:
            new_attempts = attempts + 1
            error = str(exc) or exc.__class__.__name__
            new_status = (
                QueueStatus.DEAD_LETTERED if new_attempts >= MAX_ATTEMPTS else QueueStatus.PENDING
            )
            await db.execute(
                update(QueuedEvent)
                .where(QueuedEvent.id == row_id)
                .values(attempt_count=new_attempts, last_error=error[:2000], status=new_status.value)
            )
            await db.commit()

            if new_status is QueueStatus.DEAD_LETTERED:
                counts["dead_lettered"] += 1
                logger.warning(
                    "event_dead_lettered",
                    queue_id=str(row_id),
                    source=source,
                    attempts=new_attempts,
                    error=error,
                )
            else:
                counts["failed"] += 1
                logger.info(
                    "event_dispatch_failed",
                    queue_id=str(row_id),
                    source=source,
                    attempts=new_attempts,
                    error=error,
                )
            continue

        await db.execute(
            update(QueuedEvent)
            .where(QueuedEvent.id == row_id)
            .values(status=QueueStatus.COMPLETED.value, processed_at=utc_now())
        )
        await db.commit()
        counts["processed"] += 1

    if rows:
        logger.info("event_queue_drained", batch=len(rows), **counts)
    return counts


async def count_pending(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count()).select_from(QueuedEvent).where(QueuedEvent.status == QueueStatus.PENDING.value)
    )
    return result.scalar_one()


async def count_dead_lettered(db: AsyncSession) -> int:
    result = await db.execute(
        select(func.count())
        .select_from(QueuedEvent)
        .where(QueuedEvent.status == QueueStatus.DEAD_LETTERED.value)
    )
    return result.scalar_one()


async def requeue_dead_lettered(db: AsyncSession, queue_ids: list[uuid.UUID]) -> int:
    """Manual remediation: put dead-lettered rows back in the queue with a fresh attempt budget."""
    if not queue_ids:
        return 0
    result = await db.execute(
        update(QueuedEvent)
        .where(
            QueuedEvent.id.in_(queue_ids),
            QueuedEvent.status == QueueStatus.DEAD_LETTERED.value,
        )
        .values(status=QueueStatus.PENDING.value, attempt_count=0, last_error=None)
    )
    await db.commit()
    logger.info("event_queue_requeued", requested=len(queue_ids), requeued=result.rowcount)
    return result.rowcount
