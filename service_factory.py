import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, Optional

from api_clients.base_client import build_backend
from api_clients.broadcast_client import BroadcastClient
from api_clients.crm_client import CrmClient
from api_clients.log_client import LogClient
from api_clients.queue_client import QueueClient
from api_clients.template_client import TemplateClient
from api_clients.workflow_client import WorkflowClient
from config import Settings, get_settings
from executor.audience_resolver import AudienceResolver
from executor.broadcast_engine import BroadcastEngine
from executor.direct_message import DirectMessenger
from executor.queue_executor import QueueExecutor
from executor.segment_service import SegmentService
from executor.sender_builder import SenderBuilder
from executor.template_service import TemplateService
from models.template import Channel
from scheduler.queue_poller import QueuePoller
from scheduler.workflow_definitions import WorkflowDefinitionStore
from scheduler.workflow_scheduler import WorkflowScheduler
from senders.base_sender import BaseSender
from utils.time_utils import utcnow

logger = logging.getLogger("messaging_service")


@dataclass
class MessagingServices:
    settings: Settings
    crm: CrmClient
    templates: TemplateService
    workflows: WorkflowDefinitionStore
    scheduler: WorkflowScheduler
    queue: QueueExecutor
    audience: AudienceResolver
    segments: SegmentService
    broadcasts: BroadcastEngine
    messages: DirectMessenger
    senders: Dict[Channel, BaseSender]

    def poller(self, tenant_ids=None, sleep=None) -> QueuePoller:
        kwargs = {"sleep": sleep} if sleep else {}
        return QueuePoller(
            self.queue,
            tenant_ids if tenant_ids is not None else self.settings.poll_tenant_ids,
            interval_seconds=self.settings.poll_interval_seconds,
            **kwargs,
        )


def build_services(
    settings: Optional[Settings] = None,
    backend=None,
    senders: Optional[Dict[Channel, BaseSender]] = None,
    sleep: Optional[Callable[[float], None]] = None,
    clock: Callable[[], datetime] = utcnow,
) -> MessagingServices:
    """Wires every component onto one table backend and one sender per channel."""
    settings = settings or get_settings()
    backend = backend if backend is not None else build_backend(settings)
    senders = senders if senders is not None else SenderBuilder.build(settings)

    crm = CrmClient(backend)
    template_client = TemplateClient(backend)
    queue_client = QueueClient(backend)
    log_client = LogClient(backend)

    workflows = WorkflowDefinitionStore(WorkflowClient(backend))
    audience = AudienceResolver(crm)

    services = MessagingServices(
        settings=settings,
        crm=crm,
        templates=TemplateService(template_client),
        workflows=workflows,
        scheduler=WorkflowScheduler(
            definitions=workflows,
            queue_client=queue_client,
            template_client=template_client,
            crm_client=crm,
            guard_trigger_enrollment=settings.guard_trigger_enrollment,
            clock=clock,
        ),
        queue=QueueExecutor(
            queue_client=queue_client,
            crm_client=crm,
            log_client=log_client,
            senders=senders,
            page_size=settings.queue_page_size,
            strict_status=settings.queue_strict_status,
            clock=clock,
        ),
        audience=audience,
        segments=SegmentService(crm, audience),
        broadcasts=BroadcastEngine(
            broadcast_client=BroadcastClient(backend),
            template_client=template_client,
            crm_client=crm,
            audience_resolver=audience,
            senders=senders,
            send_delay_seconds=settings.broadcast_send_delay_ms / 1000.0,
            preview_limit=settings.preview_recipient_limit,
            sleep=sleep,
            clock=clock,
        ),
        messages=DirectMessenger(crm, log_client, senders),
        senders=senders,
    )
    providers = ", ".join(f"{c.value}={s.provider_name}" for c, s in senders.items())
    logger.info(f"Messaging services ready (store={settings.store_backend}, {providers})")
    return services
