import logging
import time
from datetime import datetime
from typing import Callable, Dict, List, Optional, Tuple

from api_clients.broadcast_client import BroadcastClient
from api_clients.crm_client import CrmClient
from api_clients.template_client import TemplateClient
from executor.audience_resolver import AudienceResolver
from executor.template_renderer import render
from models.broadcast import (
    Broadcast,
    BroadcastMessage,
    BroadcastMessageStatus,
    BroadcastPreview,
    BroadcastSendSummary,
    BroadcastStatus,
    PreviewRecipient,
    TargetType,
)
from models.client import Client, Tenant
from models.delivery import DeliveryOutcome, MISSING_CONTACT, NO_SMS_CONSENT, PROVIDER_NOT_CONFIGURED
from models.template import Channel, TemplateVariables
from senders.base_sender import BaseSender
from utils.errors import ConflictError, NotFoundError, ProviderError, ValidationError
from utils.rate_limiter import FixedIntervalThrottle
from utils.time_utils import utcnow

logger = logging.getLogger("messaging_service")

DEFAULT_SEND_DELAY_SECONDS = 0.15
DEFAULT_PREVIEW_LIMIT = 50


class BroadcastEngine:
    """
    Campaign lifecycle: draft -> sending -> completed | failed.

    `send` claims the campaign with a conditional update before touching
    any recipient, then walks the audience sequentially. Every audience
    member gets exactly one BroadcastMessage row (sent, failed or skipped),
    and the campaign counters always add up to total_recipients.
    """

    def __init__(
        self,
        broadcast_client: Optional[BroadcastClient] = None,
        template_client: Optional[TemplateClient] = None,
        crm_client: Optional[CrmClient] = None,
        audience_resolver: Optional[AudienceResolver] = None,
        senders: Optional[Dict[Channel, BaseSender]] = None,
        send_delay_seconds: float = DEFAULT_SEND_DELAY_SECONDS,
        preview_limit: int = DEFAULT_PREVIEW_LIMIT,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.broadcast_client = broadcast_client or BroadcastClient()
        self.template_client = template_client or TemplateClient()
        self.crm_client = crm_client or CrmClient()
        self.audience_resolver = audience_resolver or AudienceResolver(self.crm_client)
        self.senders = senders or {}
        self.send_delay_seconds = send_delay_seconds
        self.preview_limit = preview_limit
        self.sleep = sleep or time.sleep
        self.clock = clock

    # ── Authoring ─────────────────────────────────────────────────────────────

    def create(self, broadcast: Broadcast) -> Broadcast:
        if not broadcast.tenant_id:
            raise ValidationError("tenant_id required")
        if not broadcast.name or not broadcast.name.strip():
            raise ValidationError("Broadcast name is required")
        if not broadcast.template_id and not (broadcast.custom_body or "").strip():
            raise ValidationError("Either template_id or custom_body is required")
        if broadcast.target_type != TargetType.ALL and not broadcast.target_id:
            raise ValidationError(f"target_id required for target_type '{broadcast.target_type.value}'")

        draft = broadcast.model_copy(update={
            "id": None,
            "status": BroadcastStatus.DRAFT,
            "total_recipients": 0,
            "sent_count": 0,
            "failed_count": 0,
            "skipped_count": 0,
            "sent_at": None,
        })
        created = self.broadcast_client.create(draft)
        logger.info(f"[Broadcast] Created draft '{created.name}' ({created.id}) for tenant {created.tenant_id}")
        return created

    def list(self, tenant_id: str) -> List[Broadcast]:
        if not tenant_id:
            raise ValidationError("tenant_id required")
        return self.broadcast_client.list(tenant_id)

    def get(self, tenant_id: str, broadcast_id: str) -> Broadcast:
        broadcast = self.broadcast_client.get(tenant_id, broadcast_id)
        if not broadcast:
            raise NotFoundError("Broadcast not found")
        return broadcast

    def messages(self, tenant_id: str, broadcast_id: str) -> List[BroadcastMessage]:
        broadcast = self.get(tenant_id, broadcast_id)
        return self.broadcast_client.list_messages(broadcast.id)

    # ── Preview ───────────────────────────────────────────────────────────────

    def preview(self, tenant_id: str, broadcast_id: str) -> BroadcastPreview:
        """Send forecast for a campaign. Reads only; nothing is written."""
        broadcast = self.get(tenant_id, broadcast_id)
        body, subject = self._message_source(broadcast)
        tenant = self.crm_client.get_tenant(tenant_id)
        audience = self.audience_resolver.resolve(tenant_id, broadcast.target_type, broadcast.target_id)
        consent = self._consent_map(broadcast.channel, audience)

        sendable = missing_contact = no_consent = 0
        first_sendable: Optional[Client] = None
        recipients: List[PreviewRecipient] = []

        for client in audience:
            contact = _contact_for(client, broadcast.channel)
            has_consent = broadcast.channel != Channel.SMS or consent.get(client.id, False)

            if not contact:
                missing_contact += 1
                will_send = False
            elif not has_consent:
                no_consent += 1
                will_send = False
            else:
                sendable += 1
                will_send = True
                if first_sendable is None:
                    first_sendable = client

            if len(recipients) < self.preview_limit:
                recipients.append(PreviewRecipient(
                    id=client.id,
                    name=client.full_name or "Client",
                    contact=contact,
                    will_send=will_send,
                    has_consent=has_consent,
                ))

        variables = _preview_variables(first_sendable, tenant)
        sample_subject = render(subject, variables) if subject else None
        return BroadcastPreview(
            total=len(audience),
            sendable=sendable,
            missing_contact=missing_contact,
            no_consent=no_consent,
            recipients=recipients,
            sample_body=render(body, variables),
            sample_subject=sample_subject,
        )

    # ── Send ──────────────────────────────────────────────────────────────────

    def send(self, tenant_id: str, broadcast_id: str) -> BroadcastSendSummary:
        if not tenant_id or not broadcast_id:
            raise ValidationError("tenant_id and broadcast id required")

        existing = self.get(tenant_id, broadcast_id)
        if existing.status != BroadcastStatus.DRAFT:
            raise ConflictError(f"Broadcast already {existing.status.value}")

        broadcast = self.broadcast_client.claim_for_sending(tenant_id, broadcast_id)
        if broadcast is None:
            raise ConflictError("Broadcast is already being sent")
        logger.info(f"[Broadcast] Claimed '{broadcast.name}' ({broadcast.id}) for sending")

        body, subject = self._message_source(broadcast)
        tenant = self.crm_client.get_tenant(tenant_id)
        audience = self.audience_resolver.resolve(tenant_id, broadcast.target_type, broadcast.target_id)
        consent = self._consent_map(broadcast.channel, audience)
        sender = self.senders.get(broadcast.channel)
        throttle = FixedIntervalThrottle(self.send_delay_seconds, sleep=self.sleep)

        sent = failed = skipped = 0
        for client in audience:
            contact = _contact_for(client, broadcast.channel)

            if not contact:
                self._record_skip(broadcast, client, MISSING_CONTACT)
                skipped += 1
                continue
            if broadcast.channel == Channel.SMS and not consent.get(client.id, False):
                self._record_skip(broadcast, client, NO_SMS_CONSENT, recipient=contact)
                skipped += 1
                continue

            variables = _campaign_variables(client, tenant)
            rendered_body = render(body, variables)
            rendered_subject = render(subject, variables) if subject else None
            email_subject = None
            if broadcast.channel == Channel.EMAIL:
                email_subject = rendered_subject or f"Message from {variables.business_name}"

            throttle.wait()
            outcome = _deliver(sender, contact, rendered_body, email_subject)

            if outcome.delivered:
                sent += 1
                status, error, sent_at = BroadcastMessageStatus.SENT, None, self.clock()
            else:
                failed += 1
                status, error, sent_at = BroadcastMessageStatus.FAILED, outcome.error or outcome.reason, None
                logger.error(f"[Broadcast] {broadcast.id} -> client {client.id} failed: {error}")

            self.broadcast_client.add_message(BroadcastMessage(
                broadcast_id=broadcast.id,
                client_id=client.id,
                channel=broadcast.channel,
                recipient=contact,
                rendered_subject=rendered_subject,
                rendered_body=rendered_body,
                status=status,
                error_message=error,
                sent_at=sent_at,
            ))

        total = len(audience)
        final_status = BroadcastStatus.FAILED if failed == total else BroadcastStatus.COMPLETED
        self.broadcast_client.finalize(broadcast.id, {
            "status": final_status.value,
            "total_recipients": total,
            "sent_count": sent,
            "failed_count": failed,
            "skipped_count": skipped,
            "sent_at": self.clock(),
        })
        logger.info(
            f"[Broadcast] '{broadcast.name}' {final_status.value}: "
            f"{sent} sent, {failed} failed, {skipped} skipped of {total}"
        )
        return BroadcastSendSummary(
            broadcast_id=broadcast.id,
            status=final_status,
            total=total,
            sent=sent,
            failed=failed,
            skipped=skipped,
        )

    # ── Helpers ───────────────────────────────────────────────────────────────

    def _message_source(self, broadcast: Broadcast) -> Tuple[str, Optional[str]]:
        if broadcast.template_id:
            template = self.template_client.get(broadcast.tenant_id, broadcast.template_id)
            if template:
                return template.body, template.subject
            logger.warning(f"[Broadcast] Template {broadcast.template_id} not found, using custom body")
        return broadcast.custom_body or "", broadcast.custom_subject

    def _consent_map(self, channel: Channel, audience: List[Client]) -> Dict[str, bool]:
        """client_id -> sms_consent of that client's most recent waiver."""
        if channel != Channel.SMS or not audience:
            return {}
        consent: Dict[str, bool] = {}
        for waiver in self.crm_client.waivers_newest_first([c.id for c in audience]):
            if waiver.client_id not in consent:
                consent[waiver.client_id] = bool(waiver.sms_consent)
        return consent

    def _record_skip(self, broadcast: Broadcast, client: Client, reason: str, recipient: Optional[str] = None):
        self.broadcast_client.add_message(BroadcastMessage(
            broadcast_id=broadcast.id,
            client_id=client.id,
            channel=broadcast.channel,
            recipient=recipient or "none",
            rendered_body="",
            status=BroadcastMessageStatus.SKIPPED,
            error_message=reason,
        ))


def _deliver(sender: Optional[BaseSender], contact: str, body: str, subject: Optional[str]) -> DeliveryOutcome:
    if sender is None:
        return DeliveryOutcome.failed(PROVIDER_NOT_CONFIGURED)
    try:
        sender.send(contact, body, subject)
    except ProviderError as e:
        return DeliveryOutcome.failed(str(e))
    return DeliveryOutcome.sent()


def _contact_for(client: Client, channel: Channel) -> Optional[str]:
    return client.phone if channel == Channel.SMS else client.email


def _campaign_variables(client: Optional[Client], tenant: Optional[Tenant]) -> TemplateVariables:
    return TemplateVariables(
        client_name=(client.full_name if client else "") or "Client",
        client_first_name=(client.first_name if client else "") or "Client",
        business_name=(tenant.name if tenant else "") or "Business",
        business_phone=(tenant.phone if tenant else "") or "",
    )


def _preview_variables(client: Optional[Client], tenant: Optional[Tenant]) -> TemplateVariables:
    """Previews take the first word of the display name as the first name."""
    variables = _campaign_variables(client, tenant)
    return variables.model_copy(update={"client_first_name": variables.client_name.split(" ")[0]})
