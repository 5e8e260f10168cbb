from typing import Any, Dict, List, Optional

from api_clients.base_client import BaseClient, asc, desc, eq, in_, to_row
from models.client import (
    Client,
    ClientNote,
    ClientSegment,
    ClientTag,
    ClientTagAssignment,
    Tenant,
    Waiver,
)
from utils.time_utils import utcnow

CLIENTS_TABLE = "clients"
TENANTS_TABLE = "tenants"
TAGS_TABLE = "client_tags"
ASSIGNMENTS_TABLE = "client_tag_assignments"
SEGMENTS_TABLE = "client_segments"
WAIVERS_TABLE = "waivers"
NOTES_TABLE = "client_notes"


class CrmClient(BaseClient):
    """Read access to clients and tenants, plus the tag, segment and note tables."""

    # ── Clients & tenants ─────────────────────────────────────────────────────

    def get_client(self, tenant_id: str, client_id: str) -> Optional[Client]:
        row = self._first(CLIENTS_TABLE, [eq("id", client_id), eq("tenant_id", tenant_id)])
        return Client.model_validate(row) if row else None

    def list_clients(self, tenant_id: str, client_ids: Optional[List[str]] = None) -> List[Client]:
        filters = [eq("tenant_id", tenant_id)]
        if client_ids is not None:
            if not client_ids:
                return []
            filters.append(in_("id", client_ids))
        rows = self._select(CLIENTS_TABLE, filters=filters, order=[desc("created_at")])
        return [Client.model_validate(r) for r in rows]

    def get_tenant(self, tenant_id: str) -> Optional[Tenant]:
        row = self._first(TENANTS_TABLE, [eq("id", tenant_id)])
        return Tenant.model_validate(row) if row else None

    # ── Tags ──────────────────────────────────────────────────────────────────

    def list_tags(self, tenant_id: str) -> List[ClientTag]:
        rows = self._select(TAGS_TABLE, filters=[eq("tenant_id", tenant_id)], order=[asc("name")])
        return [ClientTag.model_validate(r) for r in rows]

    def get_tag(self, tenant_id: str, tag_id: str) -> Optional[ClientTag]:
        row = self._first(TAGS_TABLE, [eq("id", tag_id), eq("tenant_id", tenant_id)])
        return ClientTag.model_validate(row) if row else None

    def find_tag(self, tenant_id: str, name: str) -> Optional[ClientTag]:
        row = self._first(TAGS_TABLE, [eq("tenant_id", tenant_id), eq("name", name)])
        return ClientTag.model_validate(row) if row else None

    def create_tag(self, tag: ClientTag) -> ClientTag:
        return ClientTag.model_validate(self._insert(TAGS_TABLE, [to_row(tag)])[0])

    def assignments_for_tags(self, tag_ids: List[str]) -> List[ClientTagAssignment]:
        rows = self._select(ASSIGNMENTS_TABLE, filters=[in_("tag_id", tag_ids)])
        return [ClientTagAssignment.model_validate(r) for r in rows]

    def assignments_for_client(self, client_id: str) -> List[ClientTagAssignment]:
        rows = self._select(ASSIGNMENTS_TABLE, filters=[eq("client_id", client_id)], order=[asc("assigned_at")])
        return [ClientTagAssignment.model_validate(r) for r in rows]

    def assign_tag(self, client_id: str, tag_id: str) -> ClientTagAssignment:
        existing = self._first(ASSIGNMENTS_TABLE, [eq("client_id", client_id), eq("tag_id", tag_id)])
        if existing:
            return ClientTagAssignment.model_validate(existing)
        row = self._insert(ASSIGNMENTS_TABLE, [to_row(ClientTagAssignment(
            client_id=client_id, tag_id=tag_id, assigned_at=utcnow(),
        ))])[0]
        return ClientTagAssignment.model_validate(row)

    def remove_tag(self, client_id: str, tag_id: str) -> int:
        return self._delete(ASSIGNMENTS_TABLE, [eq("client_id", client_id), eq("tag_id", tag_id)])

    # ── Segments ──────────────────────────────────────────────────────────────

    def get_segment(self, tenant_id: str, segment_id: str) -> Optional[ClientSegment]:
        row = self._first(SEGMENTS_TABLE, [eq("id", segment_id), eq("tenant_id", tenant_id)])
        return ClientSegment.model_validate(row) if row else None

    def create_segment(self, segment: ClientSegment) -> ClientSegment:
        row = segment.model_dump(mode="json", exclude_none=True, by_alias=True)
        return ClientSegment.model_validate(self._insert(SEGMENTS_TABLE, [row])[0])

    def update_segment(self, tenant_id: str, segment_id: str, updates: Dict[str, Any]) -> Optional[ClientSegment]:
        rows = self._update(SEGMENTS_TABLE, updates, [eq("id", segment_id), eq("tenant_id", tenant_id)])
        return ClientSegment.model_validate(rows[0]) if rows else None

    def delete_segment(self, tenant_id: str, segment_id: str) -> int:
        return self._delete(SEGMENTS_TABLE, [eq("id", segment_id), eq("tenant_id", tenant_id)])

    # ── Waivers & notes ───────────────────────────────────────────────────────

    def waivers_newest_first(self, client_ids: List[str]) -> List[Waiver]:
        if not client_ids:
            return []
        rows = self._select(WAIVERS_TABLE, filters=[in_("client_id", client_ids)], order=[desc("created_at")])
        return [Waiver.model_validate(r) for r in rows]

    def add_note(self, note: ClientNote) -> ClientNote:
        return ClientNote.model_validate(self._insert(NOTES_TABLE, [to_row(note)])[0])
