from fastapi import Depends, FastAPI, Query
from fastapi.responses import JSONResponse
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from functools import lru_cache
import logging

from config import get_settings
from models.broadcast import Broadcast, TargetType
from models.client import SegmentCriteria
from models.queue_entry import QueueFilter
from models.template import Channel
from models.workflow import StepDefinition, WorkflowTemplate
from service_factory import MessagingServices, build_services
from utils.errors import MessagingError


def setup_logging(settings):
    handlers = [logging.StreamHandler()]
    if settings.log_file:
        handlers.insert(0, logging.FileHandler(settings.log_file))
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s',
        handlers=handlers,
    )


setup_logging(get_settings())
logger = logging.getLogger("messaging_service")

app = FastAPI(title="Client Messaging Service")


@lru_cache(maxsize=1)
def _default_services() -> MessagingServices:
    return build_services()


def get_services() -> MessagingServices:
    return _default_services()


@app.exception_handler(MessagingError)
def messaging_error_handler(request, exc: MessagingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


# ── Request bodies ────────────────────────────────────────────────────────────

class WorkflowCreateRequest(BaseModel):
    tenant_id: str
    name: str
    trigger_type: str
    steps: List[StepDefinition] = []


class WorkflowUpdateRequest(BaseModel):
    tenant_id: str
    id: str
    name: Optional[str] = None
    trigger_type: Optional[str] = None
    is_active: Optional[bool] = None
    steps: Optional[List[StepDefinition]] = None


class TriggerRequest(BaseModel):
    tenant_id: str
    client_id: str
    trigger_type: str


class EnrollRequest(BaseModel):
    tenant_id: str
    workflow_id: str
    actor_id: Optional[str] = None


class QueueActionRequest(BaseModel):
    tenant_id: str
    queue_id: str


class TemplateCreateRequest(BaseModel):
    tenant_id: str
    name: str
    channel: str
    body: str
    subject: Optional[str] = None
    category: Optional[str] = None


class TemplateUpdateRequest(BaseModel):
    tenant_id: str
    name: Optional[str] = None
    channel: Optional[str] = None
    subject: Optional[str] = None
    body: Optional[str] = None
    category: Optional[str] = None


class TemplatePreviewRequest(BaseModel):
    body: Optional[str] = None
    variables: Optional[Dict[str, str]] = None


class BroadcastCreateRequest(BaseModel):
    tenant_id: str
    name: str
    channel: Channel
    target_type: TargetType
    target_id: Optional[str] = None
    target_name: Optional[str] = None
    template_id: Optional[str] = None
    custom_subject: Optional[str] = None
    custom_body: Optional[str] = None


class SendMessageRequest(BaseModel):
    tenant_id: str
    client_id: str
    channel: str
    message: str
    subject: Optional[str] = None


class TagCreateRequest(BaseModel):
    tenant_id: str
    name: str
    color: Optional[str] = None


class TagAssignRequest(BaseModel):
    tenant_id: str
    tag_id: str


class SegmentCreateRequest(BaseModel):
    tenant_id: str
    name: str
    description: Optional[str] = None
    filter_criteria: SegmentCriteria = Field(default_factory=SegmentCriteria)


class SegmentUpdateRequest(BaseModel):
    tenant_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    filter_criteria: Optional[SegmentCriteria] = None


def _workflow_json(workflow: WorkflowTemplate) -> dict:
    data = workflow.model_dump(mode="json")
    data["steps"] = [s.model_dump(mode="json") for s in workflow.steps]
    return data


# ── Health ────────────────────────────────────────────────────────────────────

@app.get("/health")
def health_check():
    return {"status": "ok"}


# ── Workflows ─────────────────────────────────────────────────────────────────

@app.get("/api/workflows")
def list_workflows(tenant_id: str, services: MessagingServices = Depends(get_services)):
    return [_workflow_json(w) for w in services.workflows.list(tenant_id)]


@app.post("/api/workflows", status_code=201)
def create_workflow(payload: WorkflowCreateRequest, services: MessagingServices = Depends(get_services)):
    workflow = services.workflows.create(payload.tenant_id, payload.name, payload.trigger_type, payload.steps)
    logger.info(f"Created workflow '{workflow.name}' ({workflow.id}) with {len(workflow.steps)} steps")
    return _workflow_json(workflow)


@app.patch("/api/workflows")
def update_workflow(payload: WorkflowUpdateRequest, services: MessagingServices = Depends(get_services)):
    workflow = services.workflows.update(
        payload.tenant_id,
        payload.id,
        name=payload.name,
        trigger_type=payload.trigger_type,
        is_active=payload.is_active,
        steps=payload.steps,
    )
    return _workflow_json(workflow)


@app.delete("/api/workflows")
def delete_workflow(tenant_id: str, id: str, services: MessagingServices = Depends(get_services)):
    services.workflows.delete(tenant_id, id)
    return {"success": True}


@app.post("/api/workflows/trigger")
def trigger_workflows(payload: TriggerRequest, services: MessagingServices = Depends(get_services)):
    entries = services.scheduler.queue_workflow(payload.tenant_id, payload.client_id, payload.trigger_type)
    return {"queued": len(entries), "entries": jsonable_encoder(entries)}


@app.post("/api/clients/{client_id}/enroll-workflow")
def enroll_client(client_id: str, payload: EnrollRequest, services: MessagingServices = Depends(get_services)):
    result = services.scheduler.enroll(payload.tenant_id, client_id, payload.workflow_id, actor_id=payload.actor_id)
    return {"success": True, **result.model_dump()}


@app.post("/api/clients/send-message")
def send_client_message(payload: SendMessageRequest, services: MessagingServices = Depends(get_services)):
    result = services.messages.send_message(
        payload.tenant_id, payload.client_id, payload.channel, payload.message, subject=payload.subject,
    )
    return {
        "success": True,
        "sent": result.sent,
        "outcome": result.outcome.model_dump(mode="json", exclude_none=True),
    }


# ── Workflow queue ────────────────────────────────────────────────────────────

@app.get("/api/clients/workflow-queue")
def read_queue(
    tenant_id: str,
    status: Optional[QueueFilter] = Query(default=None),
    services: MessagingServices = Depends(get_services),
):
    split = services.queue.list_split(tenant_id, status)
    return jsonable_encoder(split)


@app.post("/api/clients/workflow-queue")
def send_queue_item(payload: QueueActionRequest, services: MessagingServices = Depends(get_services)):
    result = services.queue.send(payload.tenant_id, payload.queue_id)
    return {
        "id": result.entry_id,
        "status": result.status.value,
        "sent": result.sent,
        "outcome": result.outcome.model_dump(mode="json", exclude_none=True),
    }


@app.patch("/api/clients/workflow-queue")
def skip_queue_item(payload: QueueActionRequest, services: MessagingServices = Depends(get_services)):
    entry = services.queue.skip(payload.tenant_id, payload.queue_id)
    return {"success": True, "id": entry.id, "status": entry.status.value}


# ── Message templates ─────────────────────────────────────────────────────────

@app.get("/api/templates")
def list_templates(
    tenant_id: str,
    channel: Optional[str] = None,
    category: Optional[str] = None,
    services: MessagingServices = Depends(get_services),
):
    return jsonable_encoder(services.templates.list(tenant_id, channel=channel, category=category))


@app.post("/api/templates", status_code=201)
def create_template(payload: TemplateCreateRequest, services: MessagingServices = Depends(get_services)):
    template = services.templates.create(
        payload.tenant_id,
        payload.name,
        payload.channel,
        payload.body,
        subject=payload.subject,
        category=payload.category,
    )
    return jsonable_encoder(template)


@app.post("/api/templates/preview")
def preview_template(payload: TemplatePreviewRequest, services: MessagingServices = Depends(get_services)):
    rendered = services.templates.preview(payload.body, payload.variables)
    return {"rendered": rendered, "missing": services.templates.unresolved(payload.body, payload.variables)}


@app.get("/api/templates/variables")
def template_variables(services: MessagingServices = Depends(get_services)):
    return services.templates.variables()


@app.get("/api/templates/{template_id}")
def get_template(template_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.templates.get(tenant_id, template_id))


@app.patch("/api/templates/{template_id}")
def update_template(template_id: str, payload: TemplateUpdateRequest, services: MessagingServices = Depends(get_services)):
    changes = payload.model_dump(exclude_unset=True, exclude={"tenant_id"})
    return jsonable_encoder(services.templates.update(payload.tenant_id, template_id, changes))


@app.delete("/api/templates/{template_id}")
def delete_template(template_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    services.templates.delete(tenant_id, template_id)
    return {"success": True}


# ── Broadcasts ────────────────────────────────────────────────────────────────

@app.get("/api/broadcasts")
def list_broadcasts(tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.broadcasts.list(tenant_id))


@app.post("/api/broadcasts", status_code=201)
def create_broadcast(payload: BroadcastCreateRequest, services: MessagingServices = Depends(get_services)):
    broadcast = services.broadcasts.create(Broadcast(**payload.model_dump()))
    return jsonable_encoder(broadcast)


@app.get("/api/broadcasts/{broadcast_id}")
def get_broadcast(broadcast_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.broadcasts.get(tenant_id, broadcast_id))


@app.get("/api/broadcasts/{broadcast_id}/messages")
def list_broadcast_messages(broadcast_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.broadcasts.messages(tenant_id, broadcast_id))


@app.get("/api/broadcasts/{broadcast_id}/preview")
def preview_broadcast(broadcast_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    preview = services.broadcasts.preview(tenant_id, broadcast_id)
    return preview.model_dump(mode="json", by_alias=True)


@app.post("/api/broadcasts/{broadcast_id}/send")
def send_broadcast(broadcast_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    summary = services.broadcasts.send(tenant_id, broadcast_id)
    return summary.model_dump(mode="json", exclude={"broadcast_id"})


# ── Tags & segments ───────────────────────────────────────────────────────────

@app.get("/api/tags")
def list_tags(tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.segments.list_tags(tenant_id))


@app.post("/api/tags", status_code=201)
def create_tag(payload: TagCreateRequest, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.segments.create_tag(payload.tenant_id, payload.name, payload.color))


@app.post("/api/clients/{client_id}/tags")
def assign_client_tag(client_id: str, payload: TagAssignRequest, services: MessagingServices = Depends(get_services)):
    assignment = services.segments.assign_tag(payload.tenant_id, client_id, payload.tag_id)
    return jsonable_encoder(assignment)


@app.get("/api/clients/{client_id}/tags")
def list_client_tags(client_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    return jsonable_encoder(services.segments.client_tags(tenant_id, client_id))


@app.delete("/api/clients/{client_id}/tags")
def remove_client_tag(client_id: str, tenant_id: str, tag_id: str, services: MessagingServices = Depends(get_services)):
    removed = services.segments.remove_tag(tenant_id, client_id, tag_id)
    return {"success": True, "removed": removed}


@app.post("/api/segments", status_code=201)
def create_segment(payload: SegmentCreateRequest, services: MessagingServices = Depends(get_services)):
    segment = services.segments.create_segment(
        payload.tenant_id, payload.name, payload.filter_criteria.tag_ids, description=payload.description,
    )
    return segment.model_dump(mode="json", by_alias=True)


@app.get("/api/segments/{segment_id}")
def get_segment(segment_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    segment = services.segments.get_segment(tenant_id, segment_id)
    data = segment.model_dump(mode="json", by_alias=True)
    data["match_count"] = services.segments.match_count(segment)
    return data


@app.patch("/api/segments/{segment_id}")
def update_segment(segment_id: str, payload: SegmentUpdateRequest, services: MessagingServices = Depends(get_services)):
    segment = services.segments.update_segment(
        payload.tenant_id,
        segment_id,
        name=payload.name,
        description=payload.description,
        tag_ids=payload.filter_criteria.tag_ids if payload.filter_criteria else None,
    )
    return segment.model_dump(mode="json", by_alias=True)


@app.delete("/api/segments/{segment_id}")
def delete_segment(segment_id: str, tenant_id: str, services: MessagingServices = Depends(get_services)):
    services.segments.delete_segment(tenant_id, segment_id)
    return {"success": True}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8050)
