from datetime import datetime
from typing import Any, Dict, List, Optional

from api_clients.base_client import BaseClient, asc, eq, gt, in_, lte, to_row
from models.queue_entry import ACTIVE_QUEUE_STATUSES, QueueFilter, QueueStatus, WorkflowQueueEntry

TABLE = "workflow_queue"


class QueueClient(BaseClient):

    def insert_entries(self, entries: List[WorkflowQueueEntry]) -> List[WorkflowQueueEntry]:
        rows = self._insert(TABLE, [to_row(e) for e in entries])
        return [WorkflowQueueEntry.model_validate(r) for r in rows]

    def get(self, tenant_id: str, entry_id: str) -> Optional[WorkflowQueueEntry]:
        row = self._first(TABLE, [eq("id", entry_id), eq("tenant_id", tenant_id)])
        return WorkflowQueueEntry.model_validate(row) if row else None

    def list_pending(self, tenant_id: str, status_filter: QueueFilter, now: datetime, limit: int) -> List[WorkflowQueueEntry]:
        filters = [eq("tenant_id", tenant_id), eq("status", QueueStatus.PENDING)]
        if status_filter == QueueFilter.READY:
            filters.append(lte("scheduled_for", now))
        elif status_filter == QueueFilter.UPCOMING:
            filters.append(gt("scheduled_for", now))
        rows = self._select(TABLE, filters=filters, order=[asc("scheduled_for")], limit=limit)
        return [WorkflowQueueEntry.model_validate(r) for r in rows]

    def active_for_client(self, tenant_id: str, client_id: str) -> List[WorkflowQueueEntry]:
        rows = self._select(TABLE, filters=[
            eq("tenant_id", tenant_id),
            eq("client_id", client_id),
            in_("status", list(ACTIVE_QUEUE_STATUSES)),
        ])
        return [WorkflowQueueEntry.model_validate(r) for r in rows]

    def transition(self, tenant_id: str, entry_id: str, status: QueueStatus, acted_at: datetime,
                   from_status: QueueStatus = QueueStatus.PENDING) -> Optional[WorkflowQueueEntry]:
        """Moves an entry from `from_status` to `status`. Returns None if it was no longer in `from_status`."""
        updates: Dict[str, Any] = {"status": status.value, "acted_at": acted_at}
        rows = self._update(TABLE, updates, [
            eq("id", entry_id),
            eq("tenant_id", tenant_id),
            eq("status", from_status),
        ])
        return WorkflowQueueEntry.model_validate(rows[0]) if rows else None
