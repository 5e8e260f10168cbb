from typing import Dict

from models.template import Channel
from senders.base_sender import BaseSender
from senders.mock_senders import MockEmailSender, MockSMSSender
from senders.resend_sender import ResendSender
from senders.smtp_sender import SMTPSender
from senders.twilio_sender import TwilioSender

SMS_PROVIDERS = ("twilio", "mock")
EMAIL_PROVIDERS = ("resend", "smtp", "mock")


class SenderBuilder:

    @staticmethod
    def validate_config(settings):
        """Raises ValueError if a provider name is unknown."""
        sms_provider = (settings.sms_provider or "").lower()
        if sms_provider not in SMS_PROVIDERS:
            raise ValueError(f"Unsupported SMS provider: {sms_provider!r}. Expected one of {SMS_PROVIDERS}.")
        email_provider = (settings.email_provider or "").lower()
        if email_provider not in EMAIL_PROVIDERS:
            raise ValueError(f"Unsupported email provider: {email_provider!r}. Expected one of {EMAIL_PROVIDERS}.")

    @staticmethod
    def build_sms(settings) -> BaseSender:
        if settings.sms_provider.lower() == "mock":
            return MockSMSSender()
        return TwilioSender(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_phone_number,
        )

    @staticmethod
    def build_email(settings) -> BaseSender:
        provider = settings.email_provider.lower()
        if provider == "smtp":
            return SMTPSender(
                host=settings.smtp_host,
                port=settings.smtp_port,
                username=settings.smtp_username,
                password=settings.smtp_password,
                from_email=settings.smtp_from_email,
                use_tls=settings.smtp_use_tls,
            )
        if provider == "mock":
            return MockEmailSender()
        return ResendSender(api_key=settings.resend_api_key, from_email=settings.resend_from_email)

    @staticmethod
    def build(settings) -> Dict[Channel, BaseSender]:
        """One sender per channel."""
        SenderBuilder.validate_config(settings)
        return {
            Channel.SMS: SenderBuilder.build_sms(settings),
            Channel.EMAIL: SenderBuilder.build_email(settings),
        }
