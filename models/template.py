from pydantic import BaseModel, ConfigDict
from typing import Optional, Dict, List
from enum import Enum
from datetime import datetime


class Channel(str, Enum):
    SMS = "sms"
    EMAIL = "email"


class TemplateCategory(str, Enum):
    GENERAL = "general"
    AFTERCARE = "aftercare"
    PROMOTION = "promotion"
    REMINDER = "reminder"
    FOLLOW_UP = "follow_up"
    THANK_YOU = "thank_you"
    BOOKING = "booking"


class MessageTemplate(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    name: str
    channel: Channel
    subject: Optional[str] = None
    body: str
    category: TemplateCategory = TemplateCategory.GENERAL
    is_default: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class TemplateVariables(BaseModel):
    """
    The closed set of variables the engine substitutes into message bodies.

    Unset fields are left out of the substitution map, so their
    placeholders stay in the rendered text verbatim.
    """
    model_config = ConfigDict(extra="forbid")

    client_name: Optional[str] = None
    client_first_name: Optional[str] = None
    business_name: Optional[str] = None
    business_phone: Optional[str] = None

    def as_mapping(self) -> Dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


# Variable keys with labels for template editors.
TEMPLATE_VARIABLES: List[Dict[str, str]] = [
    {"key": "client_name", "label": "Client Name", "example": "Sarah Johnson"},
    {"key": "client_first_name", "label": "First Name", "example": "Sarah"},
    {"key": "business_name", "label": "Business Name", "example": "Golden Touch PJ"},
    {"key": "business_phone", "label": "Business Phone", "example": "(555) 123-4567"},
]

SAMPLE_VARIABLES = TemplateVariables(
    client_name="Sarah Johnson",
    client_first_name="Sarah",
    business_name="Your Business",
    business_phone="(555) 123-4567",
)
