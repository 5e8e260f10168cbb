import logging
from typing import Any, Dict, List, Mapping, Optional

from api_clients.template_client import TemplateClient
from executor.template_renderer import missing, render
from models.template import SAMPLE_VARIABLES, TEMPLATE_VARIABLES, Channel, MessageTemplate, TemplateCategory
from utils.errors import ConflictError, NotFoundError, ValidationError
from utils.time_utils import utcnow

logger = logging.getLogger("messaging_service")

# Seeded for a tenant the first time its templates are listed.
DEFAULT_TEMPLATES: List[Dict[str, Any]] = [
    {
        "name": "Aftercare Reminder",
        "channel": Channel.SMS,
        "category": TemplateCategory.AFTERCARE,
        "body": (
            "Hi {{client_name}}! Thanks for your new piece from {{business_name}}! "
            "Avoid pulling or tugging for the first 24 hours; showering and swimming are fine. "
            "Questions? Text us at {{business_phone}}!"
        ),
    },
    {
        "name": "Thank You",
        "channel": Channel.SMS,
        "category": TemplateCategory.THANK_YOU,
        "body": "Hi {{client_name}}! Thank you so much for visiting {{business_name}} today! We loved creating your piece.",
    },
    {
        "name": "Booking Reminder",
        "channel": Channel.SMS,
        "category": TemplateCategory.BOOKING,
        "body": "Hi {{client_name}}! Just a reminder about your appointment with {{business_name}} tomorrow. We can't wait to see you!",
    },
    {
        "name": "Aftercare Instructions",
        "channel": Channel.EMAIL,
        "category": TemplateCategory.AFTERCARE,
        "subject": "Your Permanent Jewelry Care Guide 💍",
        "body": (
            "Hi {{client_name}},\n\n"
            "Thank you for choosing {{business_name}}! A few tips for your new piece:\n\n"
            "First 24 hours: avoid pulling or tugging, and be gentle when getting dressed.\n"
            "Daily wear: showering and swimming are perfectly fine.\n"
            "Long-term: no special cleaning needed. If it ever feels loose, just reach out at {{business_phone}}.\n\n"
            "With love,\n{{business_name}}"
        ),
    },
    {
        "name": "Thank You",
        "channel": Channel.EMAIL,
        "category": TemplateCategory.THANK_YOU,
        "subject": "Thank you for choosing {{business_name}}!",
        "body": (
            "Hi {{client_name}},\n\n"
            "Thank you so much for visiting us today! We loved creating your piece.\n\n"
            "If you have any questions or want to book another appointment, don't hesitate to reach out.\n\n"
            "Warmly,\n{{business_name}}"
        ),
    },
    {
        "name": "Special Promotion",
        "channel": Channel.EMAIL,
        "category": TemplateCategory.PROMOTION,
        "subject": "Something special from {{business_name}} ✨",
        "body": (
            "Hi {{client_name}},\n\n"
            "We have something exciting to share with you!\n\n"
            "[Add your promotion details here]\n\n"
            "Book your next appointment today!\n\n"
            "XO,\n{{business_name}}"
        ),
    },
]

_UPDATABLE_FIELDS = ("name", "channel", "subject", "body", "category")


def _coerce(enum_cls, value):
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(f"Invalid {enum_cls.__name__}: {value!r}")


class TemplateService:
    """Tenant-scoped CRUD over message templates, plus a stateless render preview."""

    def __init__(self, template_client: Optional[TemplateClient] = None):
        self.template_client = template_client or TemplateClient()

    def seed_defaults(self, tenant_id: str) -> int:
        if self.template_client.has_any(tenant_id):
            return 0
        created = self.template_client.create_many([
            MessageTemplate(tenant_id=tenant_id, is_default=True, **fields) for fields in DEFAULT_TEMPLATES
        ])
        logger.info(f"[Templates] Seeded {len(created)} default templates for tenant {tenant_id}")
        return len(created)

    def list(self, tenant_id: str, channel: Optional[str] = None, category: Optional[str] = None) -> List[MessageTemplate]:
        if not tenant_id:
            raise ValidationError("tenant_id required")
        self.seed_defaults(tenant_id)
        return self.template_client.list(tenant_id, channel=channel, category=category)

    def get(self, tenant_id: str, template_id: str) -> MessageTemplate:
        template = self.template_client.get(tenant_id, template_id)
        if not template:
            raise NotFoundError("Template not found")
        return template

    def create(self, tenant_id: str, name: str, channel, body: str, subject: Optional[str] = None, category=None) -> MessageTemplate:
        if not tenant_id or not name or not channel or not body:
            raise ValidationError("tenant_id, name, channel, and body are required")
        template = MessageTemplate(
            tenant_id=tenant_id,
            name=name.strip(),
            channel=_coerce(Channel, channel),
            subject=subject or None,
            body=body,
            category=_coerce(TemplateCategory, category) if category else TemplateCategory.GENERAL,
            is_default=False,
        )
        return self.template_client.create_many([template])[0]

    def update(self, tenant_id: str, template_id: str, changes: Mapping[str, Any]) -> MessageTemplate:
        updates: Dict[str, Any] = {}
        for field in _UPDATABLE_FIELDS:
            if field not in changes:
                continue
            value = changes[field]
            if field == "name":
                value = (value or "").strip()
                if not value:
                    raise ValidationError("Template name cannot be empty")
            elif field == "subject":
                value = value or None
            elif field == "channel":
                value = _coerce(Channel, value).value
            elif field == "category":
                value = _coerce(TemplateCategory, value).value
            updates[field] = value
        updates["updated_at"] = utcnow()

        updated = self.template_client.update(tenant_id, template_id, updates)
        if not updated:
            raise NotFoundError("Template not found")
        return updated

    def delete(self, tenant_id: str, template_id: str):
        template = self.get(tenant_id, template_id)
        if template.is_default:
            raise ConflictError("Cannot delete default templates")
        self.template_client.delete(tenant_id, template_id)
        logger.info(f"[Templates] Deleted template '{template.name}' ({template_id})")

    @staticmethod
    def preview(body: Optional[str], variables: Optional[Mapping[str, str]] = None) -> str:
        if not body:
            raise ValidationError("body is required")
        return render(body, variables or {})

    @staticmethod
    def unresolved(body: Optional[str], variables: Optional[Mapping[str, str]] = None) -> List[str]:
        """Placeholders in `body` that `variables` leaves literal."""
        return missing(body, variables or {})

    @staticmethod
    def variables() -> Dict[str, Any]:
        """Variable keys template editors can insert, plus sample values for previews."""
        return {"variables": TEMPLATE_VARIABLES, "sample": SAMPLE_VARIABLES.as_mapping()}
