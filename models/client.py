from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class Client(BaseModel):
    id: str
    tenant_id: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def full_name(self) -> str:
        """First and last name joined, empty when neither is set."""
        return " ".join(part for part in (self.first_name, self.last_name) if part)

    @property
    def initials(self) -> str:
        first = (self.first_name or "")[:1]
        last = (self.last_name or "")[:1]
        return f"{first}{last}".upper()


class Tenant(BaseModel):
    id: str
    name: Optional[str] = None
    phone: Optional[str] = None


class ClientTag(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    name: str
    color: str = "#6B7280"
    created_at: Optional[datetime] = None


class TagUsage(ClientTag):
    """A tag with the number of clients holding it."""
    usage_count: int = 0


class ClientTagAssignment(BaseModel):
    id: Optional[str] = None
    client_id: str
    tag_id: str
    assigned_at: Optional[datetime] = None


class AssignedTag(BaseModel):
    id: Optional[str] = None
    assigned_at: Optional[datetime] = None
    tag: ClientTag


class SegmentCriteria(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tag_ids: List[str] = Field(default_factory=list, alias="tagIds")


class ClientSegment(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    name: str
    description: Optional[str] = None
    filter_criteria: SegmentCriteria = Field(default_factory=SegmentCriteria)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class Waiver(BaseModel):
    id: Optional[str] = None
    client_id: str
    sms_consent: Optional[bool] = False
    created_at: Optional[datetime] = None


class ClientNote(BaseModel):
    id: Optional[str] = None
    tenant_id: str
    client_id: str
    created_by: Optional[str] = None
    body: str
    created_at: Optional[datetime] = None
