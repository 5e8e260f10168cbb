import logging
from typing import Optional

import requests

from models.template import Channel
from senders.base_sender import BaseSender
from senders.email_layout import EmailLayout
from utils.errors import ProviderError

logger = logging.getLogger("messaging_service")


class ResendSender(BaseSender):
    channel = Channel.EMAIL
    provider_name = "resend"

    def __init__(self, api_key: Optional[str], from_email: Optional[str], timeout: int = 30, layout: Optional[EmailLayout] = None):
        self.api_key = api_key
        self.from_email = from_email
        self.url = "https://api.resend.com/emails"
        self.timeout = timeout
        self.layout = layout or EmailLayout()
        self.session = requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.from_email)

    def send(self, to: str, body: str, subject: Optional[str] = None) -> bool:
        if not self.is_configured:
            logger.info(f"[Resend] Email skipped (not configured). Would send to {to}: {subject}")
            return False

        payload = {
            "from": self.from_email,
            "to": [to],
            "subject": subject or "",
            "html": self.layout.render(body),
            "text": body,
        }
        auth_headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self.session.post(self.url, json=payload, headers=auth_headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[Resend] Email to {to} failed: {e}")
            raise ProviderError(str(e), provider=self.provider_name) from e

        if response.status_code >= 400:
            try:
                message = response.json().get("message") or response.text
            except ValueError:
                message = response.text or f"HTTP {response.status_code}"
            logger.error(f"[Resend] Email to {to} rejected: {response.status_code} - {message}")
            raise ProviderError(message or "Resend error", provider=self.provider_name)

        logger.info(f"[Resend] Email sent to {to}")
        return True
