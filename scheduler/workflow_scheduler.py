import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from api_clients.crm_client import CrmClient
from api_clients.queue_client import QueueClient
from api_clients.template_client import TemplateClient
from executor.template_renderer import render
from models.client import Client, ClientNote, Tenant
from models.queue_entry import QueueStatus, WorkflowQueueEntry
from models.template import TemplateVariables
from models.workflow import EnrollmentResult, WorkflowStep, WorkflowTemplate
from scheduler.workflow_definitions import WorkflowDefinitionStore
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.time_utils import ensure_aware, hours_after, utcnow

logger = logging.getLogger("messaging_service")


class WorkflowScheduler:
    """
    Turns an enrollment into pending, pre-rendered queue entries.

    Every step of a workflow is scheduled from the same enrollment time:
    scheduled_for = enrolled_at + delay_hours. Delays are offsets from
    enrollment, not from the previous step.
    """

    def __init__(
        self,
        definitions: Optional[WorkflowDefinitionStore] = None,
        queue_client: Optional[QueueClient] = None,
        template_client: Optional[TemplateClient] = None,
        crm_client: Optional[CrmClient] = None,
        guard_trigger_enrollment: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.definitions = definitions or WorkflowDefinitionStore()
        self.queue_client = queue_client or QueueClient()
        self.template_client = template_client or TemplateClient()
        self.crm_client = crm_client or CrmClient()
        self.guard_trigger_enrollment = guard_trigger_enrollment
        self.clock = clock

    def queue_workflow(self, tenant_id: str, client_id: str, trigger_type: str,
                       now: Optional[datetime] = None) -> List[WorkflowQueueEntry]:
        """
        Enrolls a client in every active workflow for `trigger_type`.

        Re-triggering enrolls the client again into a fresh sequence unless
        the trigger guard is on, in which case workflows the client is
        already active in are skipped.
        """
        if not tenant_id or not client_id or not trigger_type:
            raise ValidationError("tenant_id, client_id, and trigger_type required")

        self.definitions.seed_defaults(tenant_id)
        workflows = self.definitions.active_for_trigger(tenant_id, trigger_type)
        if not workflows:
            logger.info(f"[Scheduler] No active workflows for trigger '{trigger_type}' (tenant {tenant_id})")
            return []

        variables = self._variables(tenant_id, client_id)
        templates = self.template_client.bodies_by_name(tenant_id)
        active_step_ids = self._active_step_ids(tenant_id, client_id) if self.guard_trigger_enrollment else set()
        enrolled_at = ensure_aware(now) if now else self.clock()

        queued: List[WorkflowQueueEntry] = []
        for workflow in workflows:
            steps = self.definitions.steps(workflow.id)
            if not steps:
                continue
            if active_step_ids & {s.id for s in steps}:
                logger.info(f"[Scheduler] Client {client_id} already active in '{workflow.name}', not re-enrolling")
                continue
            entries = self._build_entries(tenant_id, client_id, steps, variables, templates, enrolled_at)
            queued.extend(self.queue_client.insert_entries(entries))
            logger.info(f"[Scheduler] Queued {len(entries)} steps of '{workflow.name}' for client {client_id}")
        return queued

    def enroll(self, tenant_id: str, client_id: str, workflow_id: str,
               actor_id: Optional[str] = None, now: Optional[datetime] = None) -> EnrollmentResult:
        """Manual enrollment. Rejects a client already active in the workflow."""
        if not tenant_id or not client_id or not workflow_id:
            raise ValidationError("tenant_id, client_id, and workflow_id required")

        workflow = self._enrollable_workflow(tenant_id, workflow_id)
        steps = workflow.steps
        if not steps:
            raise ValidationError("Workflow has no steps")

        if self._active_step_ids(tenant_id, client_id) & {s.id for s in steps}:
            raise ConflictError("Client is already enrolled in this workflow")

        variables = self._variables(tenant_id, client_id)
        templates = self.template_client.bodies_by_name(tenant_id)
        enrolled_at = ensure_aware(now) if now else self.clock()

        entries = self._build_entries(tenant_id, client_id, steps, variables, templates, enrolled_at)
        self.queue_client.insert_entries(entries)

        self.crm_client.add_note(ClientNote(
            tenant_id=tenant_id,
            client_id=client_id,
            created_by=actor_id,
            body=f"Enrolled in {workflow.name}",
        ))
        logger.info(f"[Scheduler] Enrolled client {client_id} in '{workflow.name}' ({len(entries)} steps)")
        return EnrollmentResult(workflow_id=workflow.id, workflow_name=workflow.name, steps_created=len(entries))

    def _enrollable_workflow(self, tenant_id: str, workflow_id: str) -> WorkflowTemplate:
        workflow = self.definitions.get(tenant_id, workflow_id)
        if not workflow.is_active:
            raise ValidationError("Workflow is not active")
        return workflow

    def _active_step_ids(self, tenant_id: str, client_id: str) -> set:
        return {e.workflow_step_id for e in self.queue_client.active_for_client(tenant_id, client_id)}

    def _variables(self, tenant_id: str, client_id: str) -> TemplateVariables:
        client = self.crm_client.get_client(tenant_id, client_id)
        if not client:
            raise NotFoundError("Client not found")
        tenant = self.crm_client.get_tenant(tenant_id)
        return _workflow_variables(client, tenant)

    @staticmethod
    def _build_entries(tenant_id: str, client_id: str, steps: List[WorkflowStep],
                       variables: TemplateVariables, templates: Dict[str, str],
                       enrolled_at: datetime) -> List[WorkflowQueueEntry]:
        entries = []
        for step in sorted(steps, key=lambda s: s.step_order):
            # A step whose template name matches no stored template sends the name itself.
            body = templates.get(step.template_name) or step.template_name
            entries.append(WorkflowQueueEntry(
                tenant_id=tenant_id,
                client_id=client_id,
                workflow_step_id=step.id,
                template_name=step.template_name,
                channel=step.channel,
                scheduled_for=hours_after(enrolled_at, step.delay_hours),
                status=QueueStatus.PENDING,
                message_body=render(body, variables),
                description=step.description,
            ))
        return entries


def _workflow_variables(client: Client, tenant: Optional[Tenant]) -> TemplateVariables:
    return TemplateVariables(
        client_name=client.full_name or "there",
        business_name=(tenant.name if tenant else "") or "our studio",
        business_phone=(tenant.phone if tenant else "") or "",
    )
