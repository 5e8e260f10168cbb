import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables from .env file
load_dotenv()

_TRUTHY = {"1", "true", "yes", "on"}


def _env_bool(name: str, default: str = "0") -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


def _env_list(name: str) -> List[str]:
    return [item.strip() for item in os.getenv(name, "").split(",") if item.strip()]


class Settings(BaseModel):
    # Store
    store_backend: str = "rest"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    store_timeout_seconds: int = 30

    # SMS
    sms_provider: str = "twilio"
    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_phone_number: Optional[str] = None

    # Email
    email_provider: str = "resend"
    resend_api_key: Optional[str] = None
    resend_from_email: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_from_email: Optional[str] = None
    smtp_use_tls: bool = True

    # Engine behavior
    broadcast_send_delay_ms: int = 150
    queue_page_size: int = 20
    preview_recipient_limit: int = 50
    queue_strict_status: bool = False
    guard_trigger_enrollment: bool = False

    # Poller
    poll_tenant_ids: List[str] = []
    poll_interval_seconds: int = 60

    # Logging
    log_level: str = "INFO"
    log_file: Optional[str] = "messaging.log"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            store_backend=os.getenv("MESSAGING_STORE", "rest").strip().lower(),
            supabase_url=os.getenv("SUPABASE_URL") or None,
            supabase_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY") or None,
            store_timeout_seconds=int(os.getenv("STORE_TIMEOUT_SECONDS", "30")),
            sms_provider=os.getenv("SMS_PROVIDER", "twilio").strip().lower(),
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID") or None,
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN") or None,
            twilio_phone_number=os.getenv("TWILIO_PHONE_NUMBER") or None,
            email_provider=os.getenv("EMAIL_PROVIDER", "resend").strip().lower(),
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            resend_from_email=os.getenv("RESEND_FROM_EMAIL") or None,
            smtp_host=os.getenv("SMTP_HOST") or None,
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_username=os.getenv("SMTP_USERNAME") or None,
            smtp_password=os.getenv("SMTP_PASSWORD") or None,
            smtp_from_email=os.getenv("SMTP_FROM_EMAIL") or None,
            smtp_use_tls=_env_bool("SMTP_USE_TLS", "1"),
            broadcast_send_delay_ms=int(os.getenv("BROADCAST_SEND_DELAY_MS", "150")),
            queue_page_size=int(os.getenv("QUEUE_PAGE_SIZE", "20")),
            preview_recipient_limit=int(os.getenv("PREVIEW_RECIPIENT_LIMIT", "50")),
            queue_strict_status=_env_bool("QUEUE_STRICT_STATUS"),
            guard_trigger_enrollment=_env_bool("GUARD_TRIGGER_ENROLLMENT"),
            poll_tenant_ids=_env_list("POLL_TENANT_IDS"),
            poll_interval_seconds=int(os.getenv("POLL_INTERVAL", "60")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            log_file=os.getenv("LOG_FILE", "messaging.log") or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
