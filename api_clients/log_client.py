from typing import Optional
import logging

from api_clients.base_client import BaseClient, to_row
from models.message_log import MessageLogEntry
from utils.errors import StoreError

logger = logging.getLogger("messaging_service")

TABLE = "message_log"


class LogClient(BaseClient):

    def append(self, entry: MessageLogEntry) -> Optional[str]:
        """Best-effort append. A failed write is logged, never raised."""
        try:
            rows = self._insert(TABLE, [to_row(entry)])
            return rows[0].get("id") if rows else None
        except (StoreError, ValueError) as e:
            logger.warning(f"[Store] Could not append delivery log for client {entry.client_id}: {e}")
            return None
