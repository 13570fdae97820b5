"""NotificationDispatcher: preference gate, quiet hours, provider outcomes and sweeps."""

import json
from datetime import UTC, datetime, timedelta

import pytest
from protean import current_domain
from protean.exceptions import ValidationError

from storefront.notifications.channel import get_channel, set_channel
from storefront.notifications.notification.dispatch import NotificationDispatcher
from storefront.notifications.notification.notification import Notification, NotificationStatus
from storefront.notifications.notification.retry import RetryFailedNotifications, RetryNotification
from storefront.notifications.notification.scheduler import ProcessScheduledNotifications
from storefront.notifications.preference.management import RegisterContactPoints, SetQuietHours, SetTypeChannels

NOON = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)  # 12:00 in Mexico City
NIGHT = datetime(2026, 3, 10, 5, 0, tzinfo=UTC)  # 23:00 the day before
MORNING = datetime(2026, 3, 10, 14, 0, tzinfo=UTC)  # 08:00


def _dispatcher(now=NOON):
    return NotificationDispatcher(clock=lambda: now)


def _register(user_id="user-001", **contacts):
    current_domain.process(RegisterContactPoints(user_id=user_id, **contacts), asynchronous=False)


def _reload(notification):
    return current_domain.repository_for(Notification).get(notification.id)


def _all():
    return current_domain.repository_for(Notification)._dao.query.all().items


class TestEnqueue:
    def test_sends_immediately(self):
        _register(email="ana@example.com")

        notification = _dispatcher().enqueue("user-001", "order_shipped", "email", "Shipped", "On its way")

        assert _reload(notification).status == NotificationStatus.SENT.value
        sent = get_channel("email").sent
        assert sent[0]["to"] == "ana@example.com"
        assert sent[0]["subject"] == "Shipped"

    def test_explicit_recipient_wins(self):
        _register(email="ana@example.com")

        _dispatcher().enqueue("user-001", "order_shipped", "email", "Shipped", "x", recipient="other@example.com")

        assert get_channel("email").sent[0]["to"] == "other@example.com"

    def test_refused_by_preferences(self):
        current_domain.process(
            SetTypeChannels(user_id="user-001", notification_type="promotion", channels=json.dumps(["push"])),
            asynchronous=False,
        )

        with pytest.raises(ValidationError):
            _dispatcher().enqueue("user-001", "promotion", "email", "Sale", "50% off")

        assert _all() == []
        assert get_channel("email").attempts == 0

    def test_in_app_needs_no_provider(self):
        notification = _dispatcher().enqueue("user-001", "promotion", "in_app", "Sale", "50% off")
        assert _reload(notification).status == NotificationStatus.SENT.value

    def test_scheduled_waits(self):
        later = NOON + timedelta(hours=2)

        notification = _dispatcher().enqueue("user-001", "order_shipped", "sms", "x", "y", scheduled_for=later)

        assert _reload(notification).status == NotificationStatus.PENDING.value
        assert get_channel("sms").attempts == 0


class TestProviderFailure:
    def test_failure_is_recorded_not_raised(self):
        get_channel("email").configure(should_succeed=False, failure_reason="Mailbox full")

        notification = _dispatcher().enqueue("user-001", "order_shipped", "email", "Shipped", "x")

        reloaded = _reload(notification)
        assert reloaded.status == NotificationStatus.FAILED.value
        assert reloaded.error_message == "Mailbox full"
        assert reloaded.retry_count == 1

    def test_provider_exception_is_a_failure(self):
        class Exploding:
            def send(self, **kwargs):
                raise ConnectionError("provider down")

        set_channel("sms", Exploding())

        notification = _dispatcher().enqueue("user-001", "order_shipped", "sms", "x", "y")

        assert _reload(notification).status == NotificationStatus.FAILED.value
        assert "provider down" in _reload(notification).error_message


class TestRetrySweep:
    def test_waits_for_backoff(self):
        get_channel("email").fail_next(1)
        notification = _dispatcher().enqueue("user-001", "order_shipped", "email", "x", "y")

        assert _dispatcher(NOON + timedelta(minutes=1)).retry_failed() == 0
        assert _dispatcher(NOON + timedelta(minutes=2)).retry_failed() == 1
        assert _reload(notification).status == NotificationStatus.SENT.value

    def test_stops_when_exhausted(self):
        get_channel("email").configure(should_succeed=False)
        notification = _dispatcher().enqueue("user-001", "order_shipped", "email", "x", "y", max_retries=2)

        assert _dispatcher(NOON + timedelta(minutes=5)).retry_failed() == 1
        reloaded = _reload(notification)
        assert reloaded.retry_count == 2
        assert reloaded.retries_exhausted

        assert _dispatcher(NOON + timedelta(days=1)).retry_failed() == 0
        assert get_channel("email").attempts == 2

    def test_command(self):
        get_channel("sms").fail_next(1)
        _dispatcher().enqueue("user-001", "order_shipped", "sms", "x", "y")

        retried = current_domain.process(
            RetryFailedNotifications(as_of=NOON + timedelta(hours=1)),
            asynchronous=False,
        )

        assert retried == 1
        assert len(get_channel("sms").sent) == 1

    def test_manual_retry(self):
        get_channel("push").fail_next(1)
        notification = _dispatcher().enqueue("user-001", "order_shipped", "push", "x", "y")

        status = current_domain.process(RetryNotification(notification_id=notification.id), asynchronous=False)

        assert status == NotificationStatus.SENT.value

    def test_manual_retry_of_sent_notification(self):
        notification = _dispatcher().enqueue("user-001", "order_shipped", "push", "x", "y")
        with pytest.raises(ValidationError):
            current_domain.process(RetryNotification(notification_id=notification.id), asynchronous=False)


class TestQuietHours:
    @pytest.fixture(autouse=True)
    def quiet_sms(self):
        _register(phone="5512345678")
        current_domain.process(
            SetQuietHours(user_id="user-001", channel="sms", start="22:00", end="08:00"),
            asynchronous=False,
        )

    def test_deferred_to_window_end(self):
        notification = _dispatcher(NIGHT).enqueue("user-001", "order_shipped", "sms", "x", "y")

        reloaded = _reload(notification)
        assert reloaded.status == NotificationStatus.PENDING.value
        assert reloaded.scheduled_for.replace(tzinfo=UTC) == MORNING
        assert get_channel("sms").attempts == 0

    def test_other_channels_unaffected(self):
        notification = _dispatcher(NIGHT).enqueue("user-001", "order_shipped", "push", "x", "y")
        assert _reload(notification).status == NotificationStatus.SENT.value

    def test_sent_once_window_ends(self):
        notification = _dispatcher(NIGHT).enqueue("user-001", "order_shipped", "sms", "x", "y")

        assert _dispatcher(MORNING - timedelta(minutes=1)).process_due() == 0
        assert _dispatcher(MORNING).process_due() == 1
        assert _reload(notification).status == NotificationStatus.SENT.value
        assert get_channel("sms").sent[0]["to"] == "5512345678"

    def test_scheduled_command(self):
        _dispatcher(NIGHT).enqueue("user-001", "order_shipped", "sms", "x", "y")

        dispatched = current_domain.process(ProcessScheduledNotifications(as_of=MORNING), asynchronous=False)

        assert dispatched == 1


class TestNotify:
    def test_skips_refused_channels(self):
        current_domain.process(
            SetTypeChannels(user_id="user-001", notification_type="order_confirmed", channels=json.dumps([])),
            asynchronous=False,
        )

        created = _dispatcher().notify("user-001", "order_confirmed", ("email", "in_app"), "Confirmed", "Thanks")

        assert [n.channel for n in created] == ["in_app"]

    def test_contacts_override(self):
        _dispatcher().notify("user-001", "order_confirmed", ("email",), "t", "m", contacts={"email": "x@example.com"})
        assert get_channel("email").sent[0]["to"] == "x@example.com"


class TestSendBulk:
    def test_summary(self):
        current_domain.process(
            SetTypeChannels(user_id="user-003", notification_type="promotion", channels=json.dumps(["push"])),
            asynchronous=False,
        )
        get_channel("email").fail_next(1)

        summary = _dispatcher().send_bulk(["user-001", "user-002", "user-003"], "promotion", "email", "Sale", "50%")

        assert summary == {"sent": 1, "failed": 1, "deferred": 0, "refused": 1}


class TestSweepsReadEveryRow:
    def test_due_notification_behind_many_future_ones(self):
        dispatcher = _dispatcher()
        for n in range(120):
            dispatcher.enqueue("user-001", "promotion", "in_app", f"Later {n}", "y", scheduled_for=NOON + timedelta(days=1))
        due = dispatcher.enqueue("user-001", "promotion", "in_app", "Soon", "y", scheduled_for=NOON + timedelta(minutes=1))

        assert _dispatcher(NOON + timedelta(minutes=2)).process_due() == 1
        assert _reload(due).status == NotificationStatus.SENT.value

    def test_retryable_notification_behind_many_exhausted_ones(self):
        email = get_channel("email")
        email.configure(should_succeed=False)
        dispatcher = _dispatcher()
        for n in range(120):
            dispatcher.enqueue("user-001", "order_shipped", "email", f"Shipped {n}", "y", max_retries=1)
        email.configure(should_succeed=True)
        email.fail_next(1)
        retryable = dispatcher.enqueue("user-001", "order_shipped", "email", "Shipped", "y")

        assert _dispatcher(NOON + timedelta(minutes=5)).retry_failed() == 1
        assert _reload(retryable).status == NotificationStatus.SENT.value
