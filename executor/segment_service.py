import logging
from collections import Counter
from typing import Any, Dict, List, Optional

from api_clients.crm_client import CrmClient
from executor.audience_resolver import AudienceResolver
from models.client import AssignedTag, ClientSegment, ClientTag, ClientTagAssignment, SegmentCriteria, TagUsage
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.time_utils import utcnow

logger = logging.getLogger("messaging_service")


class SegmentService:
    """Tags, tag assignments and tag-intersection segments for one tenant."""

    def __init__(self, crm_client: Optional[CrmClient] = None, audience_resolver: Optional[AudienceResolver] = None):
        self.crm_client = crm_client or CrmClient()
        self.audience_resolver = audience_resolver or AudienceResolver(self.crm_client)

    # ── Tags ──────────────────────────────────────────────────────────────────

    def list_tags(self, tenant_id: str) -> List[TagUsage]:
        """Tenant tags by name, each with the number of clients holding it."""
        if not tenant_id:
            raise ValidationError("tenant_id required")
        tags = self.crm_client.list_tags(tenant_id)
        counts = Counter(a.tag_id for a in self.crm_client.assignments_for_tags([t.id for t in tags])) if tags else Counter()
        return [TagUsage(**t.model_dump(), usage_count=counts[t.id]) for t in tags]

    def client_tags(self, tenant_id: str, client_id: str) -> List[AssignedTag]:
        if not tenant_id or not client_id:
            raise ValidationError("tenant_id and client_id required")
        if not self.crm_client.get_client(tenant_id, client_id):
            raise NotFoundError("Client not found")
        tags = {t.id: t for t in self.crm_client.list_tags(tenant_id)}
        return [
            AssignedTag(id=a.id, assigned_at=a.assigned_at, tag=tags[a.tag_id])
            for a in self.crm_client.assignments_for_client(client_id)
            if a.tag_id in tags
        ]

    def create_tag(self, tenant_id: str, name: str, color: Optional[str] = None) -> ClientTag:
        name = (name or "").strip()
        if not tenant_id or not name:
            raise ValidationError("tenant_id and name are required")
        if self.crm_client.find_tag(tenant_id, name):
            raise ConflictError(f"Tag '{name}' already exists")
        tag = ClientTag(tenant_id=tenant_id, name=name)
        if color:
            tag.color = color
        return self.crm_client.create_tag(tag)

    def assign_tag(self, tenant_id: str, client_id: str, tag_id: str) -> ClientTagAssignment:
        self._require_client_and_tag(tenant_id, client_id, tag_id)
        return self.crm_client.assign_tag(client_id, tag_id)

    def remove_tag(self, tenant_id: str, client_id: str, tag_id: str) -> bool:
        self._require_client_and_tag(tenant_id, client_id, tag_id)
        return self.crm_client.remove_tag(client_id, tag_id) > 0

    def _require_client_and_tag(self, tenant_id: str, client_id: str, tag_id: str):
        if not tenant_id or not client_id or not tag_id:
            raise ValidationError("tenant_id, client_id, and tag_id required")
        if not self.crm_client.get_client(tenant_id, client_id):
            raise NotFoundError("Client not found")
        if not self.crm_client.get_tag(tenant_id, tag_id):
            raise NotFoundError("Tag not found")

    # ── Segments ──────────────────────────────────────────────────────────────

    def create_segment(self, tenant_id: str, name: str, tag_ids: List[str],
                       description: Optional[str] = None) -> ClientSegment:
        name = (name or "").strip()
        if not tenant_id or not name:
            raise ValidationError("tenant_id and name are required")
        return self.crm_client.create_segment(ClientSegment(
            tenant_id=tenant_id,
            name=name,
            description=description,
            filter_criteria=SegmentCriteria(tag_ids=list(tag_ids or [])),
        ))

    def get_segment(self, tenant_id: str, segment_id: str) -> ClientSegment:
        segment = self.crm_client.get_segment(tenant_id, segment_id)
        if not segment:
            raise NotFoundError("Segment not found")
        return segment

    def match_count(self, segment: ClientSegment) -> int:
        return self.audience_resolver.segment_match_count(segment.tenant_id, segment.filter_criteria.tag_ids)

    def update_segment(self, tenant_id: str, segment_id: str, name: Optional[str] = None,
                       description: Optional[str] = None, tag_ids: Optional[List[str]] = None) -> ClientSegment:
        self.get_segment(tenant_id, segment_id)
        updates: Dict[str, Any] = {"updated_at": utcnow()}
        if name is not None:
            if not name.strip():
                raise ValidationError("Segment name cannot be empty")
            updates["name"] = name.strip()
        if description is not None:
            updates["description"] = description
        if tag_ids is not None:
            updates["filter_criteria"] = SegmentCriteria(tag_ids=list(tag_ids)).model_dump(by_alias=True)
        return self.crm_client.update_segment(tenant_id, segment_id, updates)

    def delete_segment(self, tenant_id: str, segment_id: str):
        self.get_segment(tenant_id, segment_id)
        self.crm_client.delete_segment(tenant_id, segment_id)
        logger.info(f"[Audience] Deleted segment {segment_id}")
