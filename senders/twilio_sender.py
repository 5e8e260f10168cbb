import logging
from typing import Optional

import requests

from models.template import Channel
from senders.base_sender import BaseSender
from utils.errors import ProviderError

logger = logging.getLogger("messaging_service")

TWILIO_API_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"


class TwilioSender(BaseSender):
    channel = Channel.SMS
    provider_name = "twilio"

    def __init__(self, account_sid: Optional[str], auth_token: Optional[str], from_number: Optional[str], timeout: int = 30):
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.session = requests.Session()

    @property
    def is_configured(self) -> bool:
        return bool(self.account_sid and self.auth_token and self.from_number)

    def send(self, to: str, body: str, subject: Optional[str] = None) -> bool:
        if not self.is_configured:
            logger.info(f"[Twilio] SMS skipped (not configured). Would send to {to}: {body[:50]}…")
            return False

        try:
            response = self.session.post(
                TWILIO_API_URL.format(sid=self.account_sid),
                auth=(self.account_sid, self.auth_token),
                data={"To": to, "From": self.from_number, "Body": body},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[Twilio] SMS to {to} failed: {e}")
            raise ProviderError(str(e), provider=self.provider_name) from e

        if response.status_code >= 400:
            message = _error_message(response)
            logger.error(f"[Twilio] SMS to {to} rejected: {response.status_code} - {message}")
            raise ProviderError(message, provider=self.provider_name)

        logger.info(f"[Twilio] SMS sent to {to}")
        return True


def _error_message(response) -> str:
    try:
        payload = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    return payload.get("message") or f"HTTP {response.status_code}"
