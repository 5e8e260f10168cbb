import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
import logging

from models.template import Channel
from senders.base_sender import BaseSender
from senders.email_layout import EmailLayout
from utils.errors import ProviderError

logger = logging.getLogger("messaging_service")


class SMTPSender(BaseSender):
    channel = Channel.EMAIL
    provider_name = "smtp"

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        from_email: Optional[str] = None,
        use_tls: bool = True,
        layout: Optional[EmailLayout] = None,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_email = from_email
        self.use_tls = use_tls
        self.layout = layout or EmailLayout()

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email)

    def send(self, to: str, body: str, subject: Optional[str] = None) -> bool:
        if not self.is_configured:
            logger.info(f"[SMTP] Email skipped (not configured). Would send to {to}: {subject}")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject or ""

        # A trailing space in an address can cause Gmail to silently drop the message.
        clean_from_email = self.from_email.strip()
        clean_to_email = to.strip()
        msg["From"] = clean_from_email
        msg["To"] = clean_to_email

        msg.attach(MIMEText(body, "plain"))
        msg.attach(MIMEText(self.layout.render(body), "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=30) as server:
                if self.use_tls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.sendmail(clean_from_email, [clean_to_email], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"[SMTP] Email to {to} failed: {e}")
            raise ProviderError(str(e), provider=self.provider_name) from e

        logger.info(f"[SMTP] Email sent to {to}")
        return True
