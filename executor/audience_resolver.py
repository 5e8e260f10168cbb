from typing import Dict, List, Optional, Set
import logging

from api_clients.crm_client import CrmClient
from models.broadcast import TargetType
from models.client import Client

logger = logging.getLogger("messaging_service")


class AudienceResolver:
    """
    Resolves a campaign target into the list of clients it reaches.

    - `all` (or no target id): every client of the tenant
    - `tag`: clients holding that tag
    - `segment`: clients holding every tag in the segment's tagIds; an
      empty tag list degrades to every client
    """

    def __init__(self, crm_client: Optional[CrmClient] = None):
        self.crm_client = crm_client or CrmClient()

    def resolve(self, tenant_id: str, target_type, target_id: Optional[str]) -> List[Client]:
        target = TargetType(target_type)

        if target == TargetType.ALL or not target_id:
            audience = self.crm_client.list_clients(tenant_id)
        elif target == TargetType.TAG:
            audience = self._clients_with_all_tags(tenant_id, [target_id])
        else:
            segment = self.crm_client.get_segment(tenant_id, target_id)
            if not segment:
                logger.warning(f"[Audience] Segment {target_id} not found for tenant {tenant_id}")
                return []
            tag_ids = _ordered_unique(segment.filter_criteria.tag_ids)
            if not tag_ids:
                audience = self.crm_client.list_clients(tenant_id)
            else:
                audience = self._clients_with_all_tags(tenant_id, tag_ids)

        logger.info(f"[Audience] {target.value}:{target_id or '-'} resolved to {len(audience)} clients")
        return audience

    def segment_match_count(self, tenant_id: str, tag_ids: List[str]) -> int:
        tag_ids = _ordered_unique(tag_ids)
        if not tag_ids:
            return len(self.crm_client.list_clients(tenant_id))
        return len(self._clients_with_all_tags(tenant_id, tag_ids))

    def _clients_with_all_tags(self, tenant_id: str, tag_ids: List[str]) -> List[Client]:
        held: Dict[str, Set[str]] = {}
        for assignment in self.crm_client.assignments_for_tags(tag_ids):
            held.setdefault(assignment.client_id, set()).add(assignment.tag_id)

        # A set per client: holding the same tag twice never counts twice.
        matching_ids = [cid for cid, tags in held.items() if len(tags) >= len(tag_ids)]
        if not matching_ids:
            return []
        return self.crm_client.list_clients(tenant_id, client_ids=matching_ids)


def _ordered_unique(values: List[str]) -> List[str]:
    seen: List[str] = []
    for value in values:
        if value not in seen:
            seen.append(value)
    return seen
