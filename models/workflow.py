from pydantic import BaseModel, Field
from typing import Optional, List
from enum import Enum
from datetime import datetime

from models.template import Channel


class TriggerType(str, Enum):
    """Trigger keys used by the default sequences. Any string is accepted as a trigger."""
    EVENT_PURCHASE = "event_purchase"
    PRIVATE_PARTY_PURCHASE = "private_party_purchase"


class WorkflowStep(BaseModel):
    id: Optional[str] = None
    workflow_id: Optional[str] = None
    step_order: int
    delay_hours: int = Field(default=0, ge=0)
    channel: Channel = Channel.SMS
    template_name: str = ""
    description: Optional[str] = ""
    created_at: Optional[datetime] = None


class StepDefinition(BaseModel):
    """A step as supplied by an author; ordering comes from list position."""
    delay_hours: int = Field(default=0, ge=0)
    channel: Channel = Channel.SMS
    template_name: str = ""
    description: str = ""


class WorkflowTemplate(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    name: str
    trigger_type: str
    is_active: bool = True
    created_at: Optional[datetime] = None

    # Loaded from workflow_steps, never written to workflow_templates.
    steps: List[WorkflowStep] = Field(default_factory=list, exclude=True)


class EnrollmentResult(BaseModel):
    workflow_id: str
    workflow_name: str
    steps_created: int
