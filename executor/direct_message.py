import logging
from typing import Dict, Optional

from pydantic import BaseModel

from api_clients.crm_client import CrmClient
from api_clients.log_client import LogClient
from executor.template_renderer import render
from models.client import Client, Tenant
from models.delivery import DeliveryOutcome, PROVIDER_NOT_CONFIGURED
from models.message_log import MessageLogEntry
from models.template import Channel, TemplateVariables
from senders.base_sender import BaseSender
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger("messaging_service")


class DirectMessageResult(BaseModel):
    client_id: str
    channel: Channel
    recipient: str
    body: str
    subject: Optional[str] = None
    outcome: DeliveryOutcome

    @property
    def sent(self) -> bool:
        return self.outcome.delivered


class DirectMessenger:
    """
    One-off message from an operator to a single client.

    The message and subject are rendered with the client's and tenant's
    variables. Provider errors propagate to the caller; a provider without
    credentials yields a skipped outcome and no log row.
    """

    def __init__(
        self,
        crm_client: Optional[CrmClient] = None,
        log_client: Optional[LogClient] = None,
        senders: Optional[Dict[Channel, BaseSender]] = None,
    ):
        self.crm_client = crm_client or CrmClient()
        self.log_client = log_client or LogClient()
        self.senders = senders or {}

    def send_message(self, tenant_id: str, client_id: str, channel, message: str,
                     subject: Optional[str] = None) -> DirectMessageResult:
        if not tenant_id or not client_id or not channel or not message:
            raise ValidationError("tenant_id, client_id, channel, and message are required")
        try:
            channel = Channel(channel)
        except ValueError:
            raise ValidationError("Invalid channel")

        client = self.crm_client.get_client(tenant_id, client_id)
        if not client:
            raise NotFoundError("Client not found")
        tenant = self.crm_client.get_tenant(tenant_id)
        if not tenant:
            raise NotFoundError("Tenant not found")

        if channel == Channel.SMS and not client.phone:
            raise ValidationError("Client has no phone number")
        if channel == Channel.EMAIL and not client.email:
            raise ValidationError("Client has no email address")
        recipient = client.phone if channel == Channel.SMS else client.email

        variables = _direct_variables(client, tenant)
        body = render(message, variables)
        email_subject = None
        if channel == Channel.EMAIL:
            email_subject = (render(subject, variables) if subject else "") or f"Message from {tenant.name or ''}"

        sender = self.senders.get(channel)
        accepted = sender.send(recipient, body, email_subject) if sender is not None else False
        if not accepted:
            logger.info(f"[Direct] {channel.value} provider not configured; nothing sent to client {client_id}")
            outcome = DeliveryOutcome.skipped(PROVIDER_NOT_CONFIGURED)
        else:
            outcome = DeliveryOutcome.sent()
            self.log_client.append(MessageLogEntry(
                tenant_id=tenant_id,
                client_id=client_id,
                channel=channel,
                recipient_email=recipient if channel == Channel.EMAIL else None,
                recipient_phone=recipient if channel == Channel.SMS else None,
                subject=email_subject,
                body=body,
                source="manual",
                status="sent",
            ))
            logger.info(f"[Direct] Sent {channel.value} to client {client_id}")

        return DirectMessageResult(
            client_id=client_id,
            channel=channel,
            recipient=recipient,
            body=body,
            subject=email_subject,
            outcome=outcome,
        )


def _direct_variables(client: Client, tenant: Tenant) -> TemplateVariables:
    return TemplateVariables(
        client_name=client.full_name,
        client_first_name=client.first_name or "",
        business_name=tenant.name or "",
        business_phone=tenant.phone or "",
    )
