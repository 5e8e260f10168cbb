from typing import Any, Dict, List, Optional

from api_clients.base_client import BaseClient, asc, desc, eq, to_row
from models.broadcast import Broadcast, BroadcastMessage, BroadcastStatus

BROADCASTS_TABLE = "broadcasts"
MESSAGES_TABLE = "broadcast_messages"


class BroadcastClient(BaseClient):

    def get(self, tenant_id: str, broadcast_id: str) -> Optional[Broadcast]:
        row = self._first(BROADCASTS_TABLE, [eq("id", broadcast_id), eq("tenant_id", tenant_id)])
        return Broadcast.model_validate(row) if row else None

    def list(self, tenant_id: str) -> List[Broadcast]:
        rows = self._select(BROADCASTS_TABLE, filters=[eq("tenant_id", tenant_id)], order=[desc("created_at")])
        return [Broadcast.model_validate(r) for r in rows]

    def create(self, broadcast: Broadcast) -> Broadcast:
        row = self._insert(BROADCASTS_TABLE, [to_row(broadcast)])[0]
        return Broadcast.model_validate(row)

    def claim_for_sending(self, tenant_id: str, broadcast_id: str) -> Optional[Broadcast]:
        """
        Compare-and-set draft -> sending. Only one caller can win the claim;
        the others get None back.
        """
        rows = self._update(
            BROADCASTS_TABLE,
            {"status": BroadcastStatus.SENDING.value},
            [eq("id", broadcast_id), eq("tenant_id", tenant_id), eq("status", BroadcastStatus.DRAFT)],
        )
        return Broadcast.model_validate(rows[0]) if rows else None

    def finalize(self, broadcast_id: str, updates: Dict[str, Any]) -> Optional[Broadcast]:
        rows = self._update(BROADCASTS_TABLE, updates, [eq("id", broadcast_id)])
        return Broadcast.model_validate(rows[0]) if rows else None

    def add_message(self, message: BroadcastMessage) -> BroadcastMessage:
        row = self._insert(MESSAGES_TABLE, [to_row(message)])[0]
        return BroadcastMessage.model_validate(row)

    def list_messages(self, broadcast_id: str) -> List[BroadcastMessage]:
        rows = self._select(MESSAGES_TABLE, filters=[eq("broadcast_id", broadcast_id)], order=[asc("created_at")])
        return [BroadcastMessage.model_validate(r) for r in rows]
