from uuid import UUID

from pydantic import BaseModel


class WebhookAccepted(BaseModel):
    status: str
    id: UUID
