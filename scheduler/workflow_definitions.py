import logging
from typing import Any, Dict, List, Optional, Sequence

from api_clients.workflow_client import WorkflowClient
from models.workflow import StepDefinition, TriggerType, WorkflowStep, WorkflowTemplate
from utils.errors import NotFoundError, ValidationError

logger = logging.getLogger("messaging_service")

DEFAULT_WORKFLOWS: List[Dict[str, Any]] = [
    {
        "name": "Event Follow-Up Sequence",
        "trigger_type": TriggerType.EVENT_PURCHASE.value,
        "steps": [
            StepDefinition(delay_hours=0, template_name="Welcome New Client", description="Thank you message"),
            StepDefinition(delay_hours=24, template_name="Aftercare", description="Aftercare reminder"),
            StepDefinition(delay_hours=72, template_name="Social Media Request", description="Instagram tag request"),
            StepDefinition(delay_hours=168, template_name="Review Request + Party Invite", description="Review + party invite"),
        ],
    },
    {
        "name": "Private Party Follow-Up Sequence",
        "trigger_type": TriggerType.PRIVATE_PARTY_PURCHASE.value,
        "steps": [
            StepDefinition(delay_hours=0, template_name="Welcome New Client", description="Thank you message"),
            StepDefinition(delay_hours=24, template_name="Aftercare", description="Aftercare reminder"),
            StepDefinition(delay_hours=72, template_name="Social Media Request", description="Share your party pics"),
            StepDefinition(
                delay_hours=168,
                template_name="Review Request + Party Invite",
                description="Review + refer a friend for their own party",
            ),
        ],
    },
]


def number_steps(workflow_id: str, steps: Sequence[StepDefinition]) -> List[WorkflowStep]:
    """Turns authored steps into rows numbered 1..n in the order given."""
    return [
        WorkflowStep(
            workflow_id=workflow_id,
            step_order=i,
            delay_hours=s.delay_hours,
            channel=s.channel,
            template_name=s.template_name or "",
            description=s.description or "",
        )
        for i, s in enumerate(steps, start=1)
    ]


class WorkflowDefinitionStore:
    """
    Trigger-keyed workflows and their ordered steps.

    Updating steps always replaces the whole list (delete all, insert new);
    steps are never patched one by one.
    """

    def __init__(self, workflow_client: Optional[WorkflowClient] = None):
        self.workflow_client = workflow_client or WorkflowClient()

    def seed_defaults(self, tenant_id: str) -> bool:
        """Seeds the default sequences for a tenant with no workflows. No-op otherwise."""
        if self.workflow_client.has_any(tenant_id):
            return False
        for definition in DEFAULT_WORKFLOWS:
            self._create(tenant_id, definition["name"], definition["trigger_type"], definition["steps"])
        logger.info(f"[Scheduler] Seeded {len(DEFAULT_WORKFLOWS)} default workflows for tenant {tenant_id}")
        return True

    def list(self, tenant_id: str) -> List[WorkflowTemplate]:
        if not tenant_id:
            raise ValidationError("tenant_id required")
        workflows = self.workflow_client.list(tenant_id)
        if not workflows:
            return []
        steps = self.workflow_client.steps_by_workflow([w.id for w in workflows])
        return [w.model_copy(update={"steps": steps.get(w.id, [])}) for w in workflows]

    def active_for_trigger(self, tenant_id: str, trigger_type: str) -> List[WorkflowTemplate]:
        return self.workflow_client.list(tenant_id, trigger_type=trigger_type, active_only=True)

    def get(self, tenant_id: str, workflow_id: str) -> WorkflowTemplate:
        workflow = self.workflow_client.get(tenant_id, workflow_id)
        if not workflow:
            raise NotFoundError("Workflow not found")
        return workflow.model_copy(update={"steps": self.workflow_client.list_steps(workflow.id)})

    def steps(self, workflow_id: str) -> List[WorkflowStep]:
        return self.workflow_client.list_steps(workflow_id)

    def create(self, tenant_id: str, name: str, trigger_type: str,
               steps: Optional[Sequence[StepDefinition]] = None) -> WorkflowTemplate:
        if not tenant_id or not name or not trigger_type:
            raise ValidationError("tenant_id, name, and trigger_type required")
        return self._create(tenant_id, name, trigger_type, steps or [])

    def update(self, tenant_id: str, workflow_id: str, name: Optional[str] = None,
               trigger_type: Optional[str] = None, is_active: Optional[bool] = None,
               steps: Optional[Sequence[StepDefinition]] = None) -> WorkflowTemplate:
        workflow = self.get(tenant_id, workflow_id)

        updates: Dict[str, Any] = {}
        if is_active is not None:
            updates["is_active"] = is_active
        if name:
            updates["name"] = name
        if trigger_type:
            updates["trigger_type"] = trigger_type
        if updates:
            self.workflow_client.update(workflow.id, updates)

        if steps is not None:
            self.workflow_client.delete_steps(workflow.id)
            if steps:
                self.workflow_client.insert_steps(number_steps(workflow.id, steps))
            logger.info(f"[Scheduler] Replaced steps of workflow {workflow.id} ({len(steps)} steps)")

        return self.get(tenant_id, workflow_id)

    def delete(self, tenant_id: str, workflow_id: str):
        """Removes the workflow and its steps. Queue entries already written stay."""
        workflow = self.get(tenant_id, workflow_id)
        self.workflow_client.delete(workflow.id)
        logger.info(f"[Scheduler] Deleted workflow '{workflow.name}' ({workflow.id})")

    def _create(self, tenant_id: str, name: str, trigger_type: str,
                steps: Sequence[StepDefinition]) -> WorkflowTemplate:
        workflow = self.workflow_client.create(WorkflowTemplate(
            tenant_id=tenant_id, name=name, trigger_type=trigger_type, is_active=True,
        ))
        created_steps = self.workflow_client.insert_steps(number_steps(workflow.id, steps)) if steps else []
        return workflow.model_copy(update={"steps": created_steps})
