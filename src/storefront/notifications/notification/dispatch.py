"""NotificationDispatcher — gate, defer, send and record notifications.

Send pipeline for one notification:

1. preference gate (at enqueue time): the channel must be allowed for the
   notification type, otherwise the request is refused with a
   ValidationError;
2. quiet hours: inside the recipient's window the notification stays
   PENDING with ``scheduled_for`` moved to the end of the window;
3. provider call through the channel registry; the outcome is recorded on
   the aggregate (SENT, or FAILED with the next attempt time).

Provider failures never escape ``send``. Saga side effects go through
``notify``, which also swallows (and logs) refusals so that the caller's
main operation is never affected.
"""

import json
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.notifications.channel import get_channel
from storefront.notifications.notification.notification import (
    Notification,
    NotificationChannel,
    NotificationPriority,
    NotificationStatus,
)
from storefront.notifications.preference.management import preferences_for
from storefront.utils.query import fetch_all

logger = structlog.get_logger(__name__)

SCHEDULED_BATCH_SIZE = 100
RETRY_BATCH_SIZE = 50


class NotificationDispatcher:
    def __init__(self, clock=None):
        self.clock = clock or (lambda: datetime.now(UTC))

    @property
    def repo(self):
        return current_domain.repository_for(Notification)

    # -------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------
    def enqueue(
        self,
        user_id,
        notification_type,
        channel,
        title,
        message,
        data=None,
        priority=NotificationPriority.NORMAL.value,
        scheduled_for=None,
        max_retries=3,
        recipient=None,
        preference=None,
    ) -> Notification:
        """Create a notification; send it now unless it is scheduled.

        Raises:
            ValidationError: the user's preferences do not allow ``channel``
                for ``notification_type``.
        """
        preference = preference or preferences_for(user_id)
        if not preference.allows(notification_type, channel):
            raise ValidationError(
                {"channel": [f"Channel {channel} is not allowed for {notification_type} notifications"]}
            )

        notification = Notification.create(
            user_id=str(user_id),
            notification_type=notification_type,
            channel=channel,
            title=title,
            message=message,
            recipient=recipient or preference.address_for(channel),
            data=data,
            priority=priority,
            scheduled_for=scheduled_for,
            max_retries=max_retries,
        )
        self.repo.add(notification)

        if scheduled_for is None:
            self.send(notification, preference=preference)
        return notification

    def notify(
        self, user_id, notification_type, channels, title, message, data=None, contacts=None
    ) -> list[Notification]:
        """Best-effort fan-out used by the saga. Never raises.

        ``contacts`` maps a channel to an address that overrides the one in
        the user's preferences (e.g. the email captured at checkout).
        """
        contacts = contacts or {}
        created = []
        try:
            preference = preferences_for(user_id)
        except Exception:
            logger.exception("Preference lookup failed", user_id=str(user_id), notification_type=notification_type)
            return created

        for channel in channels:
            try:
                notification = self.enqueue(
                    user_id,
                    notification_type,
                    channel,
                    title,
                    message,
                    data=data,
                    recipient=contacts.get(channel),
                    preference=preference,
                )
                created.append(notification)
            except ValidationError as exc:
                logger.info(
                    "Notification refused by preferences",
                    user_id=str(user_id),
                    notification_type=notification_type,
                    channel=channel,
                    reason=str(exc.messages),
                )
            except Exception:
                logger.exception(
                    "Notification enqueue failed",
                    user_id=str(user_id),
                    notification_type=notification_type,
                    channel=channel,
                )
        return created

    def send_bulk(self, user_ids, notification_type, channel, title, message, data=None) -> dict:
        """Send the same notification to many users; refusals and failures are counted, not raised."""
        summary = {"sent": 0, "failed": 0, "deferred": 0, "refused": 0}
        for user_id in user_ids:
            try:
                notification = self.enqueue(user_id, notification_type, channel, title, message, data=data)
            except ValidationError:
                summary["refused"] += 1
                continue

            status = NotificationStatus(notification.status)
            if status == NotificationStatus.SENT:
                summary["sent"] += 1
            elif status == NotificationStatus.FAILED:
                summary["failed"] += 1
            else:
                summary["deferred"] += 1

        logger.info("Bulk notification processed", notification_type=notification_type, channel=channel, **summary)
        return summary

    # -------------------------------------------------------------------
    # Sending
    # -------------------------------------------------------------------
    def send(self, notification: Notification, preference=None, now=None) -> Notification:
        """Attempt delivery of a PENDING notification and persist the outcome."""
        now = now or self.clock()
        preference = preference or preferences_for(notification.user_id)

        resume_at = preference.quiet_hours_end(notification.channel, now)
        if resume_at is not None:
            notification.defer(resume_at)
            self.repo.add(notification)
            logger.info(
                "Notification deferred for quiet hours",
                notification_id=str(notification.id),
                channel=notification.channel,
                deferred_until=resume_at.isoformat(),
            )
            return notification

        try:
            result = _deliver(notification)
        except Exception as exc:
            result = {"status": "failed", "error": str(exc)}

        if result.get("status") == "sent":
            notification.mark_sent(external_message_id=result.get("message_id"), sent_at=now)
        else:
            notification.mark_failed(result.get("error") or "Unknown dispatch error", failed_at=now)
            logger.warning(
                "Notification send failed",
                notification_id=str(notification.id),
                channel=notification.channel,
                retry_count=notification.retry_count,
                max_retries=notification.max_retries,
                next_attempt_at=notification.scheduled_for.isoformat() if notification.scheduled_for else None,
                error=notification.error_message,
            )

        self.repo.add(notification)
        return notification

    # -------------------------------------------------------------------
    # Sweeps
    # -------------------------------------------------------------------
    def process_due(self, as_of=None, limit=SCHEDULED_BATCH_SIZE) -> int:
        """Send PENDING notifications whose ``scheduled_for`` has passed."""
        as_of = as_of or self.clock()
        pending = fetch_all(self.repo, status=NotificationStatus.PENDING.value)
        due = sorted(
            (n for n in pending if n.scheduled_for is not None and n.is_due(as_of)),
            key=lambda n: n.scheduled_for.timestamp(),
        )[:limit]

        for notification in due:
            self.send(notification, now=as_of)

        logger.info("Scheduled notifications processed", dispatched=len(due), as_of=as_of.isoformat())
        return len(due)

    def retry_failed(self, as_of=None, limit=RETRY_BATCH_SIZE) -> int:
        """Resubmit FAILED notifications with attempts left and their backoff elapsed."""
        as_of = as_of or self.clock()
        failed = fetch_all(self.repo, status=NotificationStatus.FAILED.value)
        eligible = [n for n in failed if not n.retries_exhausted and n.is_due(as_of)][:limit]

        for notification in eligible:
            notification.retry()
            self.send(notification, now=as_of)

        logger.info("Failed notifications retried", retried=len(eligible), as_of=as_of.isoformat())
        return len(eligible)


def _deliver(notification: Notification) -> dict:
    """Route to the provider for the notification's channel."""
    channel = notification.channel
    to = notification.recipient or str(notification.user_id)

    if channel == NotificationChannel.IN_APP.value:
        # Inbox only; reading it is the delivery.
        return {"status": "sent", "message_id": None}
    if channel == NotificationChannel.EMAIL.value:
        return get_channel(channel).send(to=to, subject=notification.title, body=notification.message)
    if channel == NotificationChannel.SMS.value:
        return get_channel(channel).send(to=to, body=notification.message)
    if channel == NotificationChannel.PUSH.value:
        return get_channel(channel).send(
            device_token=to,
            title=notification.title,
            body=notification.message,
            data=notification.data_dict,
        )
    return {"status": "failed", "error": f"Unknown channel: {channel}"}


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------
@storefront.command(part_of="Notification")
class SendNotification:
    """Request to notify a user over one channel (now, or at ``scheduled_for``)."""

    user_id: Identifier(required=True)
    notification_type: String(required=True)
    channel: String(required=True)
    title: String(required=True, max_length=200)
    message: Text(required=True)
    data: Text()  # JSON
    priority: String(default=NotificationPriority.NORMAL.value)
    scheduled_for: DateTime()
    max_retries: Integer(default=3)


@storefront.command_handler(part_of=Notification)
class SendNotificationHandler:
    @handle(SendNotification)
    def send_notification(self, command: SendNotification):
        notification = NotificationDispatcher().enqueue(
            user_id=command.user_id,
            notification_type=command.notification_type,
            channel=command.channel,
            title=command.title,
            message=command.message,
            data=json.loads(command.data) if command.data else None,
            priority=command.priority,
            scheduled_for=command.scheduled_for,
            max_retries=command.max_retries,
        )
        return str(notification.id)
