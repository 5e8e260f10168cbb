from typing import Any, Dict, List, Optional

from api_clients.base_client import BaseClient, asc, eq, to_row
from models.template import MessageTemplate

TABLE = "message_templates"


class TemplateClient(BaseClient):

    def has_any(self, tenant_id: str) -> bool:
        return self._first(TABLE, [eq("tenant_id", tenant_id)]) is not None

    def get(self, tenant_id: str, template_id: str) -> Optional[MessageTemplate]:
        row = self._first(TABLE, [eq("id", template_id), eq("tenant_id", tenant_id)])
        return MessageTemplate.model_validate(row) if row else None

    def list(self, tenant_id: str, channel: Optional[str] = None, category: Optional[str] = None) -> List[MessageTemplate]:
        filters = [eq("tenant_id", tenant_id)]
        if channel:
            filters.append(eq("channel", channel))
        if category:
            filters.append(eq("category", category))
        rows = self._select(TABLE, filters=filters, order=[asc("channel"), asc("name")])
        return [MessageTemplate.model_validate(r) for r in rows]

    def bodies_by_name(self, tenant_id: str) -> Dict[str, str]:
        """Maps template name to body. Later rows win on duplicate names."""
        rows = self._select(TABLE, filters=[eq("tenant_id", tenant_id)])
        return {r["name"]: r["body"] for r in rows}

    def create_many(self, templates: List[MessageTemplate]) -> List[MessageTemplate]:
        rows = self._insert(TABLE, [to_row(t) for t in templates])
        return [MessageTemplate.model_validate(r) for r in rows]

    def update(self, tenant_id: str, template_id: str, updates: Dict[str, Any]) -> Optional[MessageTemplate]:
        rows = self._update(TABLE, updates, [eq("id", template_id), eq("tenant_id", tenant_id)])
        return MessageTemplate.model_validate(rows[0]) if rows else None

    def delete(self, tenant_id: str, template_id: str) -> int:
        return self._delete(TABLE, [eq("id", template_id), eq("tenant_id", tenant_id)])
