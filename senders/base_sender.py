from abc import ABC, abstractmethod
from typing import Optional

from models.template import Channel


class BaseSender(ABC):
    """
    Contract for a channel provider.

    `send` returns True when the provider accepted the message and False
    when the provider is not configured (a silent no-op). Any delivery
    failure raises ProviderError.
    """

    channel: Channel
    provider_name: str = "base"

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        pass

    @abstractmethod
    def send(self, to: str, body: str, subject: Optional[str] = None) -> bool:
        pass
