import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from api_clients.crm_client import CrmClient
from api_clients.log_client import LogClient
from api_clients.queue_client import QueueClient
from models.client import Client
from models.delivery import DeliveryOutcome, DeliveryStatus, MISSING_CONTACT, PROVIDER_NOT_CONFIGURED
from models.message_log import MessageLogEntry
from models.queue_entry import QueueFilter, QueueItemView, QueueSendResult, QueueStatus, WorkflowQueueEntry
from models.template import Channel
from senders.base_sender import BaseSender
from utils.errors import ConflictError, NotFoundError, ProviderError, ValidationError
from utils.time_utils import utcnow

logger = logging.getLogger("messaging_service")

DEFAULT_PAGE_SIZE = 20

# Entry status recorded for each outcome when strict status is enabled.
_STRICT_STATUS = {
    DeliveryStatus.SENT: QueueStatus.SENT,
    DeliveryStatus.SKIPPED: QueueStatus.SKIPPED,
    DeliveryStatus.FAILED: QueueStatus.SEND_FAILED,
}


class QueueExecutor:
    """
    Surfaces due workflow queue entries and dispatches them one at a time.

    By default a send marks the entry `sent` whatever the provider did
    (no contact, unconfigured provider and provider errors included); the
    real outcome is returned to the caller. With `strict_status` the entry
    records `sent`, `skipped` or `send_failed` instead.
    """

    def __init__(
        self,
        queue_client: Optional[QueueClient] = None,
        crm_client: Optional[CrmClient] = None,
        log_client: Optional[LogClient] = None,
        senders: Optional[Dict[Channel, BaseSender]] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        strict_status: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.queue_client = queue_client or QueueClient()
        self.crm_client = crm_client or CrmClient()
        self.log_client = log_client or LogClient()
        self.senders = senders or {}
        self.page_size = page_size
        self.strict_status = strict_status
        self.clock = clock

    def list_entries(self, tenant_id: str, status_filter=None) -> List[QueueItemView]:
        if not tenant_id:
            raise ValidationError("tenant_id required")
        status_filter = QueueFilter(status_filter) if status_filter else QueueFilter.ALL
        entries = self.queue_client.list_pending(tenant_id, status_filter, self.clock(), self.page_size)

        client_ids = list({e.client_id for e in entries})
        clients = {c.id: c for c in self.crm_client.list_clients(tenant_id, client_ids=client_ids)} if client_ids else {}
        return [_to_view(e, clients.get(e.client_id)) for e in entries]

    def list_split(self, tenant_id: str, status_filter=None) -> Dict[str, List[QueueItemView]]:
        """The same page, split into due-now and future items."""
        items = self.list_entries(tenant_id, status_filter)
        now = self.clock()
        return {
            "ready": [i for i in items if i.scheduled_for <= now],
            "upcoming": [i for i in items if i.scheduled_for > now],
        }

    def send(self, tenant_id: str, entry_id: str) -> QueueSendResult:
        """
        Claims a pending entry, then dispatches it.

        The claim is a conditional `pending -> sent` update (`pending ->
        sending` under strict status), so a concurrent send of the same entry
        loses the claim with ConflictError before anything reaches the
        provider.
        """
        entry = self._load_pending(tenant_id, entry_id)
        client = self.crm_client.get_client(tenant_id, entry.client_id)
        contact = _contact_for(client, entry.channel)

        claim_status = QueueStatus.SENDING if self.strict_status else QueueStatus.SENT
        if self.queue_client.transition(tenant_id, entry.id, claim_status, self.clock()) is None:
            raise ConflictError(f"Queue entry {entry_id} was already acted on")

        try:
            outcome = self._dispatch(entry, contact)
        except Exception:
            if self.strict_status:
                self._finish(entry, QueueStatus.SEND_FAILED)
            raise
        if outcome.delivered:
            self._append_delivery_log(entry, contact)

        status = claim_status
        if self.strict_status:
            status = _STRICT_STATUS[outcome.status]
            self._finish(entry, status)

        logger.info(f"[Queue] Entry {entry.id} -> {status.value} (outcome: {outcome.status.value})")
        return QueueSendResult(entry_id=entry.id, status=status, outcome=outcome)

    def _finish(self, entry: WorkflowQueueEntry, status: QueueStatus):
        self.queue_client.transition(
            entry.tenant_id, entry.id, status, self.clock(), from_status=QueueStatus.SENDING,
        )

    def skip(self, tenant_id: str, entry_id: str) -> WorkflowQueueEntry:
        entry = self._load_pending(tenant_id, entry_id)
        updated = self.queue_client.transition(tenant_id, entry.id, QueueStatus.SKIPPED, self.clock())
        if updated is None:
            raise ConflictError(f"Queue entry {entry_id} was already acted on")
        logger.info(f"[Queue] Entry {entry.id} skipped by operator")
        return updated

    def _load_pending(self, tenant_id: str, entry_id: str) -> WorkflowQueueEntry:
        if not tenant_id or not entry_id:
            raise ValidationError("tenant_id and queue_id required")
        entry = self.queue_client.get(tenant_id, entry_id)
        if not entry:
            raise NotFoundError("Queue item not found")
        if entry.status != QueueStatus.PENDING:
            raise ConflictError(f"Queue item is already {entry.status.value}")
        return entry

    def _dispatch(self, entry: WorkflowQueueEntry, contact: Optional[str]) -> DeliveryOutcome:
        if not contact:
            return DeliveryOutcome.skipped(MISSING_CONTACT)
        sender = self.senders.get(entry.channel)
        if sender is None:
            return DeliveryOutcome.skipped(PROVIDER_NOT_CONFIGURED)
        try:
            subject = entry.template_name if entry.channel == Channel.EMAIL else None
            accepted = sender.send(contact, entry.message_body, subject)
        except ProviderError as e:
            logger.error(f"[Queue] {entry.channel.value} send for entry {entry.id} failed: {e}")
            return DeliveryOutcome.failed(str(e))
        return DeliveryOutcome.sent() if accepted else DeliveryOutcome.skipped(PROVIDER_NOT_CONFIGURED)

    def _append_delivery_log(self, entry: WorkflowQueueEntry, contact: str):
        self.log_client.append(MessageLogEntry(
            tenant_id=entry.tenant_id,
            client_id=entry.client_id,
            channel=entry.channel,
            recipient_email=contact if entry.channel == Channel.EMAIL else None,
            recipient_phone=contact if entry.channel == Channel.SMS else None,
            body=entry.message_body,
            template_name=entry.template_name,
            source="workflow",
            status="sent",
        ))


def _contact_for(client: Optional[Client], channel: Channel) -> Optional[str]:
    if client is None:
        return None
    return client.phone if channel == Channel.SMS else client.email


def _to_view(entry: WorkflowQueueEntry, client: Optional[Client]) -> QueueItemView:
    return QueueItemView(
        id=entry.id,
        client_id=entry.client_id,
        client_name=(client.full_name if client else "") or "Client",
        client_initials=(client.initials if client else "") or "??",
        template_name=entry.template_name,
        channel=entry.channel,
        scheduled_for=entry.scheduled_for,
        status=entry.status,
        message_body=entry.message_body,
        description=entry.description,
    )
