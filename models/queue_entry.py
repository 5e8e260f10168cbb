from pydantic import BaseModel
from typing import Optional
from enum import Enum
from datetime import datetime

from models.template import Channel
from models.delivery import DeliveryOutcome


class QueueStatus(str, Enum):
    PENDING = "pending"
    READY = "ready"
    SENDING = "sending"
    SENT = "sent"
    SKIPPED = "skipped"
    SEND_FAILED = "send_failed"


# Statuses that count as an active enrollment.
ACTIVE_QUEUE_STATUSES = (QueueStatus.PENDING, QueueStatus.READY, QueueStatus.SENDING)


class QueueFilter(str, Enum):
    READY = "ready"
    UPCOMING = "upcoming"
    ALL = "all"


class WorkflowQueueEntry(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    client_id: str
    workflow_step_id: str
    template_name: str = ""
    channel: Channel
    scheduled_for: datetime
    status: QueueStatus = QueueStatus.PENDING
    message_body: str = ""
    description: Optional[str] = None
    created_at: Optional[datetime] = None
    acted_at: Optional[datetime] = None


class QueueItemView(BaseModel):
    id: str
    client_id: str
    client_name: str
    client_initials: str
    template_name: str
    channel: Channel
    scheduled_for: datetime
    status: QueueStatus
    message_body: str
    description: Optional[str] = None


class QueueSendResult(BaseModel):
    entry_id: str
    status: QueueStatus
    outcome: DeliveryOutcome

    @property
    def sent(self) -> bool:
        return self.outcome.delivered
