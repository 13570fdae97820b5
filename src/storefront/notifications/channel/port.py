"""Channel provider ports — one abstract interface per outbound channel.

Adapters return a result dict instead of raising for provider-side
rejections:

    {"status": "sent", "message_id": "..."}
    {"status": "failed", "error": "..."}

Exceptions escaping an adapter (network errors) are treated as failures
by the dispatcher.
"""

from abc import ABC, abstractmethod


class EmailProvider(ABC):
    @abstractmethod
    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> dict:
        ...


class SMSProvider(ABC):
    @abstractmethod
    def send(self, to: str, body: str) -> dict:
        ...


class PushProvider(ABC):
    @abstractmethod
    def send(self, device_token: str, title: str, body: str, data: dict | None = None) -> dict:
        ...
