from typing import Dict, List, Optional, Set
import logging

from models.template import Channel
from senders.base_sender import BaseSender
from utils.errors import ProviderError

logger = logging.getLogger("messaging_service")


class RecordingSender(BaseSender):
    """
    Keeps every message in memory instead of delivering it. Recipients in
    `fail_for` raise ProviderError; `configured=False` behaves like a
    provider with missing credentials.
    """

    def __init__(self, channel: Channel, fail_for: Optional[Set[str]] = None, configured: bool = True):
        self.channel = channel
        self.provider_name = f"mock_{channel.value}"
        self.fail_for = set(fail_for or ())
        self.configured = configured
        self.sent: List[Dict[str, Optional[str]]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    def send(self, to: str, body: str, subject: Optional[str] = None) -> bool:
        if not self.configured:
            logger.info(f"[{self.provider_name}] Skipped (not configured): {to}")
            return False
        if to in self.fail_for:
            raise ProviderError(f"Simulated failure for {to}", provider=self.provider_name)
        logger.info(f"[{self.provider_name}] To: {to} | Subject: {subject}")
        self.sent.append({"to": to, "body": body, "subject": subject})
        return True


class MockSMSSender(RecordingSender):
    def __init__(self, **kwargs):
        super().__init__(Channel.SMS, **kwargs)


class MockEmailSender(RecordingSender):
    def __init__(self, **kwargs):
        super().__init__(Channel.EMAIL, **kwargs)
