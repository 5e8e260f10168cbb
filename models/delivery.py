from pydantic import BaseModel
from typing import Optional
from enum import Enum


class DeliveryStatus(str, Enum):
    SENT = "sent"
    SKIPPED = "skipped"
    FAILED = "failed"


class DeliveryOutcome(BaseModel):
    """Result of one dispatch attempt: Sent, Skipped(reason) or Failed(error)."""
    status: DeliveryStatus
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def sent(cls) -> "DeliveryOutcome":
        return cls(status=DeliveryStatus.SENT)

    @classmethod
    def skipped(cls, reason: str) -> "DeliveryOutcome":
        return cls(status=DeliveryStatus.SKIPPED, reason=reason)

    @classmethod
    def failed(cls, error: str) -> "DeliveryOutcome":
        return cls(status=DeliveryStatus.FAILED, error=error)

    @property
    def delivered(self) -> bool:
        return self.status == DeliveryStatus.SENT


MISSING_CONTACT = "Missing contact info"
NO_SMS_CONSENT = "No SMS consent"
PROVIDER_NOT_CONFIGURED = "Provider not configured"
