"""Sweep for notifications waiting on ``scheduled_for``.

Covers explicitly scheduled sends and quiet-hours deferrals. Run every
minute by the job runner.
"""

from datetime import UTC, datetime

from protean.fields import DateTime, Integer
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.notifications.notification.dispatch import SCHEDULED_BATCH_SIZE, NotificationDispatcher
from storefront.notifications.notification.notification import Notification


@storefront.command(part_of="Notification")
class ProcessScheduledNotifications:
    as_of: DateTime()  # defaults to now
    limit: Integer(default=SCHEDULED_BATCH_SIZE, min_value=1)


@storefront.command_handler(part_of=Notification)
class ScheduledDispatchHandler:
    @handle(ProcessScheduledNotifications)
    def dispatch_due(self, command: ProcessScheduledNotifications):
        return NotificationDispatcher().process_due(as_of=command.as_of or datetime.now(UTC), limit=command.limit)
