from typing import Any, Dict, List, Optional
import logging

from api_clients.base_client import BaseClient, asc, eq, in_, to_row
from models.workflow import WorkflowStep, WorkflowTemplate

logger = logging.getLogger("messaging_service")

TEMPLATES_TABLE = "workflow_templates"
STEPS_TABLE = "workflow_steps"


class WorkflowClient(BaseClient):

    def has_any(self, tenant_id: str) -> bool:
        return self._first(TEMPLATES_TABLE, [eq("tenant_id", tenant_id)]) is not None

    def get(self, tenant_id: str, workflow_id: str) -> Optional[WorkflowTemplate]:
        row = self._first(TEMPLATES_TABLE, [eq("id", workflow_id), eq("tenant_id", tenant_id)])
        return WorkflowTemplate.model_validate(row) if row else None

    def list(self, tenant_id: str, trigger_type: Optional[str] = None, active_only: bool = False) -> List[WorkflowTemplate]:
        filters = [eq("tenant_id", tenant_id)]
        if trigger_type is not None:
            filters.append(eq("trigger_type", trigger_type))
        if active_only:
            filters.append(eq("is_active", True))
        rows = self._select(TEMPLATES_TABLE, filters=filters, order=[asc("created_at")])
        return [WorkflowTemplate.model_validate(r) for r in rows]

    def create(self, workflow: WorkflowTemplate) -> WorkflowTemplate:
        row = self._insert(TEMPLATES_TABLE, [to_row(workflow)])[0]
        return WorkflowTemplate.model_validate(row)

    def update(self, workflow_id: str, updates: Dict[str, Any]) -> List[Dict[str, Any]]:
        return self._update(TEMPLATES_TABLE, updates, [eq("id", workflow_id)])

    def delete(self, workflow_id: str) -> int:
        self.delete_steps(workflow_id)
        return self._delete(TEMPLATES_TABLE, [eq("id", workflow_id)])

    def list_steps(self, workflow_id: str) -> List[WorkflowStep]:
        rows = self._select(STEPS_TABLE, filters=[eq("workflow_id", workflow_id)], order=[asc("step_order")])
        return [WorkflowStep.model_validate(r) for r in rows]

    def steps_by_workflow(self, workflow_ids: List[str]) -> Dict[str, List[WorkflowStep]]:
        grouped: Dict[str, List[WorkflowStep]] = {wid: [] for wid in workflow_ids}
        rows = self._select(STEPS_TABLE, filters=[in_("workflow_id", workflow_ids)], order=[asc("step_order")])
        for r in rows:
            step = WorkflowStep.model_validate(r)
            grouped.setdefault(step.workflow_id, []).append(step)
        return grouped

    def insert_steps(self, steps: List[WorkflowStep]) -> List[WorkflowStep]:
        rows = self._insert(STEPS_TABLE, [to_row(s) for s in steps])
        return [WorkflowStep.model_validate(r) for r in rows]

    def delete_steps(self, workflow_id: str) -> int:
        return self._delete(STEPS_TABLE, [eq("workflow_id", workflow_id)])
