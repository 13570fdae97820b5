"""Fake channel providers — deterministic stand-ins that record what they sent.

Each fake can be told to fail always (``configure``) or to fail a fixed
number of upcoming sends (``fail_next``), which is how tests drive the
retry state machine.
"""

from uuid import uuid4

from storefront.notifications.channel.port import EmailProvider, PushProvider, SMSProvider


class _RecordingProvider:
    prefix = "msg"
    default_failure = "Delivery failed"

    def __init__(self):
        self.sent: list[dict] = []
        self.attempts = 0
        self.should_succeed = True
        self.failure_reason = self.default_failure
        self._failures_left = 0

    def configure(self, should_succeed: bool = True, failure_reason: str | None = None):
        """Configure the fake provider behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason or self.default_failure

    def fail_next(self, times: int, failure_reason: str | None = None):
        """Fail the next ``times`` sends, then go back to the configured behavior."""
        self._failures_left = times
        self.failure_reason = failure_reason or self.default_failure

    def _record(self, **payload) -> dict:
        self.attempts += 1
        if self._failures_left > 0:
            self._failures_left -= 1
            return {"message_id": None, "status": "failed", "error": self.failure_reason}
        if not self.should_succeed:
            return {"message_id": None, "status": "failed", "error": self.failure_reason}

        message_id = f"{self.prefix}-{uuid4().hex[:12]}"
        self.sent.append({"message_id": message_id, **payload})
        return {"message_id": message_id, "status": "sent"}

    def reset(self):
        """Clear recorded messages and failure scripts (useful between tests)."""
        self.sent.clear()
        self.attempts = 0
        self.should_succeed = True
        self.failure_reason = self.default_failure
        self._failures_left = 0


class FakeEmailProvider(_RecordingProvider, EmailProvider):
    prefix = "email"
    default_failure = "Email delivery failed"

    def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> dict:
        return self._record(to=to, subject=subject, body=body, html_body=html_body)


class FakeSMSProvider(_RecordingProvider, SMSProvider):
    prefix = "sms"
    default_failure = "SMS delivery failed"

    def send(self, to: str, body: str) -> dict:
        return self._record(to=to, body=body)


class FakePushProvider(_RecordingProvider, PushProvider):
    prefix = "push"
    default_failure = "Push delivery failed"

    def send(self, device_token: str, title: str, body: str, data: dict | None = None) -> dict:
        return self._record(device_token=device_token, title=title, body=body, data=data)
