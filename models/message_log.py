from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from models.template import Channel


class MessageLogEntry(BaseModel):
    """Outbound delivery record shown on a client's activity timeline."""
    id: Optional[str] = None
    tenant_id: str
    client_id: Optional[str] = None
    direction: str = "outbound"
    channel: Channel
    recipient_email: Optional[str] = None
    recipient_phone: Optional[str] = None
    subject: Optional[str] = None
    body: str
    template_name: Optional[str] = None
    source: str
    status: str = "sent"
    created_at: Optional[datetime] = None
