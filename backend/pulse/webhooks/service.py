"""Webhook intake: verify, decode, enqueue. No processing happens on this path."""

import json

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.config import settings
from pulse.queue.models import EventSource, QueuedEvent
from pulse.queue.service import enqueue
from pulse.webhooks.signature import verify_signature

logger = structlog.get_logger()


class InvalidPayload(Exception):
    """Body is not a JSON object."""


def secret_for(source: EventSource) -> str:
    return {
        EventSource.JIRA: settings.JIRA_WEBHOOK_SECRET,
        EventSource.GITHUB: settings.GITHUB_WEBHOOK_SECRET,
        EventSource.DEPLOYMENT: settings.DEPLOYMENT_WEBHOOK_SECRET,
        EventSource.INCIDENT: settings.INCIDENT_WEBHOOK_SECRET,
    }[source]


async def receive_webhook(
    db: AsyncSession,
    source: EventSource,
    raw_body: bytes,
    signature: str | None = None,
    event_type: str | None = None,
    secret: str | None = None,
) -> QueuedEvent:
    """Verify the signature (when one is supplied) and enqueue the payload.

    Raises InvalidSignature before anything is written, and InvalidPayload
    for bodies that are not a JSON object.
    """
    verified = verify_signature(
        raw_body,
        signature,
        secret if secret is not None else secret_for(source),
        source=source.value,
    )

    try:
        payload = json.loads(raw_body)
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise InvalidPayload("Invalid JSON") from exc
    if not isinstance(payload, dict):
        raise InvalidPayload("Payload must be a JSON object")

    if signature and not verified:
        logger.info("webhook_signature_unchecked", source=source.value)

    return await enqueue(db, source, payload, event_type=event_type, signature=signature)
