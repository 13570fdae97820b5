"""Retry commands + handlers — the periodic retry sweep and a manual retry."""

from datetime import UTC, datetime

from protean.fields import DateTime, Identifier, Integer
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.notifications.notification.dispatch import RETRY_BATCH_SIZE, NotificationDispatcher
from storefront.notifications.notification.notification import Notification


@storefront.command(part_of="Notification")
class RetryFailedNotifications:
    """Request to resubmit failed notifications whose backoff has elapsed."""

    as_of: DateTime()
    limit: Integer(default=RETRY_BATCH_SIZE, min_value=1)


@storefront.command(part_of="Notification")
class RetryNotification:
    """Request to retry a failed notification right away."""

    notification_id: Identifier(required=True)


@storefront.command_handler(part_of=Notification)
class RetryNotificationHandler:
    @handle(RetryFailedNotifications)
    def retry_failed(self, command: RetryFailedNotifications):
        as_of = command.as_of or datetime.now(UTC)
        return NotificationDispatcher().retry_failed(as_of=as_of, limit=command.limit)

    @handle(RetryNotification)
    def retry_notification(self, command: RetryNotification):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        notification.retry()
        repo.add(notification)

        NotificationDispatcher().send(notification)
        return notification.status
