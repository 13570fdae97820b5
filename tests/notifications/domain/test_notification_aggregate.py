"""Notification aggregate: state machine, bounded retries and backoff."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError

from storefront.notifications.notification.events import NotificationFailed
from storefront.notifications.notification.notification import (
    Notification,
    NotificationStatus,
    backoff_delay,
)

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)


def _notification(**kwargs):
    defaults = {
        "user_id": "user-001",
        "notification_type": "order_confirmed",
        "channel": "email",
        "title": "Order confirmed",
        "message": "Thanks!",
    }
    defaults.update(kwargs)
    return Notification.create(**defaults)


class TestCreate:
    def test_pending(self):
        notification = _notification(data={"order_id": "o-1"})
        assert notification.status == NotificationStatus.PENDING.value
        assert notification.retry_count == 0
        assert notification.data_dict == {"order_id": "o-1"}
        assert notification.expires_at > notification.created_at

    def test_unknown_channel(self):
        with pytest.raises(ValidationError):
            _notification(channel="fax")

    def test_unscheduled_is_due(self):
        assert _notification().is_due(NOW)

    def test_scheduled_in_future_is_not_due(self):
        assert not _notification(scheduled_for=NOW + timedelta(hours=1)).is_due(NOW)


class TestLifecycle:
    def test_sent_then_read(self):
        notification = _notification()
        notification.mark_sent(external_message_id="email-1", sent_at=NOW)
        notification.mark_read()
        assert notification.status == NotificationStatus.READ.value
        assert notification.read_at is not None

    def test_delivered_then_read(self):
        notification = _notification()
        notification.mark_sent()
        notification.mark_delivered()
        notification.mark_read()
        assert notification.status == NotificationStatus.READ.value

    def test_read_is_terminal(self):
        notification = _notification()
        notification.mark_sent()
        notification.mark_read()
        with pytest.raises(ValidationError):
            notification.mark_read()

    def test_cannot_read_pending(self):
        with pytest.raises(ValidationError):
            _notification().mark_read()

    def test_defer_only_pending(self):
        notification = _notification()
        notification.defer(NOW + timedelta(hours=8))
        assert notification.scheduled_for == NOW + timedelta(hours=8)

        notification.mark_sent()
        with pytest.raises(ValidationError):
            notification.defer(NOW)


class TestFailureAndRetry:
    def test_backoff_doubles(self):
        assert [backoff_delay(n) for n in (1, 2, 3)] == [
            timedelta(minutes=2),
            timedelta(minutes=4),
            timedelta(minutes=8),
        ]

    def test_failure_schedules_next_attempt(self):
        notification = _notification()
        notification.mark_failed("SMTP timeout", failed_at=NOW)

        assert notification.status == NotificationStatus.FAILED.value
        assert notification.retry_count == 1
        assert notification.scheduled_for == NOW + timedelta(minutes=2)
        assert notification.error_message == "SMTP timeout"
        assert isinstance(notification._events[-1], NotificationFailed)

    def test_retry_goes_back_to_pending(self):
        notification = _notification()
        notification.mark_failed("boom", failed_at=NOW)
        notification.retry()
        assert notification.status == NotificationStatus.PENDING.value
        assert notification.scheduled_for is None

    def test_retries_are_bounded(self):
        notification = _notification(max_retries=2)
        notification.mark_failed("boom", failed_at=NOW)
        notification.retry()
        notification.mark_failed("boom", failed_at=NOW)

        assert notification.retries_exhausted
        assert notification.scheduled_for is None
        with pytest.raises(ValidationError):
            notification.retry()

    def test_only_failed_can_retry(self):
        with pytest.raises(ValidationError):
            _notification().retry()

    def test_long_error_is_truncated(self):
        notification = _notification()
        notification.mark_failed("x" * 600)
        assert len(notification.error_message) == 500
