import structlog
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from pulse.database import get_db
from pulse.queue.models import EventSource
from pulse.webhooks.schemas import WebhookAccepted
from pulse.webhooks.service import InvalidPayload, receive_webhook
from pulse.webhooks.signature import InvalidSignature

logger = structlog.get_logger()
router = APIRouter(prefix="/webhooks", tags=["webhooks"])

SIGNATURE_HEADER = "x-pulse-signature"
GITHUB_SIGNATURE_HEADER = "x-hub-signature-256"
GITHUB_EVENT_HEADER = "x-github-event"


async def _accept(
    db: AsyncSession,
    source: EventSource,
    request: Request,
    signature: str | None,
    event_type: str | None = None,
) -> WebhookAccepted:
    raw_body = await request.body()
    try:
        row = await receive_webhook(db, source, raw_body, signature=signature, event_type=event_type)
    except InvalidSignature:
        logger.warning("webhook_signature_rejected", source=source.value, path=request.url.path)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid signature")
    except InvalidPayload as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    return WebhookAccepted(status="accepted", id=row.id)


@router.post("/jira", response_model=WebhookAccepted, status_code=status.HTTP_202_ACCEPTED)
async def jira_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Receive Jira Cloud issue events."""
    return await _accept(db, EventSource.JIRA, request, request.headers.get(SIGNATURE_HEADER))


@router.post("/github", response_model=WebhookAccepted, status_code=status.HTTP_202_ACCEPTED)
async def github_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    """Receive GitHub App events (pull_request, pull_request_review, workflow_run, deployment_status)."""
    return await _accept(
        db,
        EventSource.GITHUB,
        request,
        request.headers.get(GITHUB_SIGNATURE_HEADER),
        event_type=request.headers.get(GITHUB_EVENT_HEADER),
    )


@router.post("/deployments", response_model=WebhookAccepted, status_code=status.HTTP_202_ACCEPTED)
async def deployment_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    return await _accept(db, EventSource.DEPLOYMENT, request, request.headers.get(SIGNATURE_HEADER))


@router.post("/incidents", response_model=WebhookAccepted, status_code=status.HTTP_202_ACCEPTED)
async def incident_webhook(request: Request, db: AsyncSession = Depends(get_db)):
    return await _accept(db, EventSource.INCIDENT, request, request.headers.get(SIGNATURE_HEADER))
