from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime

from models.template import Channel


class BroadcastStatus(str, Enum):
    DRAFT = "draft"
    SENDING = "sending"
    COMPLETED = "completed"
    FAILED = "failed"


class TargetType(str, Enum):
    TAG = "tag"
    SEGMENT = "segment"
    ALL = "all"


class BroadcastMessageStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"
    SKIPPED = "skipped"


class Broadcast(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    name: str
    channel: Channel
    template_id: Optional[str] = None
    custom_subject: Optional[str] = None
    custom_body: Optional[str] = None
    target_type: TargetType
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    status: BroadcastStatus = BroadcastStatus.DRAFT
    total_recipients: int = 0
    sent_count: int = 0
    failed_count: int = 0
    skipped_count: int = 0
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class BroadcastMessage(BaseModel):
    id: Optional[str] = None
    broadcast_id: str
    client_id: str
    channel: Channel
    recipient: str
    rendered_subject: Optional[str] = None
    rendered_body: str = ""
    status: BroadcastMessageStatus
    error_message: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_at: Optional[datetime] = None


class PreviewRecipient(BaseModel):
    id: str
    name: str
    contact: Optional[str] = None
    will_send: bool = Field(serialization_alias="willSend")
    has_consent: bool = Field(serialization_alias="hasConsent")


class BroadcastPreview(BaseModel):
    total: int
    sendable: int
    missing_contact: int = Field(serialization_alias="missingContact")
    no_consent: int = Field(serialization_alias="noConsent")
    recipients: List[PreviewRecipient]
    sample_body: str = Field(serialization_alias="sampleBody")
    sample_subject: Optional[str] = Field(default=None, serialization_alias="sampleSubject")


class BroadcastSendSummary(BaseModel):
    broadcast_id: str
    status: BroadcastStatus
    total: int
    sent: int
    failed: int
    skipped: int
