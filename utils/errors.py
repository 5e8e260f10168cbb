from typing import Optional


class MessagingError(Exception):
    """Base class for errors raised by the messaging engine."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(MessagingError, ValueError):
    """Missing or malformed input. Raised before any state change."""

    status_code = 400


class ConflictError(MessagingError):
    """The requested transition is not allowed from the current state."""

    status_code = 409


class NotFoundError(MessagingError):
    status_code = 404


class ProviderError(MessagingError):
    """A channel provider rejected or failed to deliver a message."""

    status_code = 502

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class StoreError(MessagingError):
    status_code = 503
