"""In-app inbox — read tracking commands and user-facing queries."""

from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.notifications.notification.notification import (
    Notification,
    NotificationChannel,
    NotificationStatus,
)
from storefront.utils.query import fetch_all

_UNREAD = (NotificationStatus.SENT.value, NotificationStatus.DELIVERED.value)


def list_for_user(user_id, status=None, channel=None, limit=50) -> list[Notification]:
    """Most recent notifications for a user, newest first."""
    filters = {"user_id": str(user_id)}
    if status:
        filters["status"] = status
    if channel:
        filters["channel"] = channel

    repo = current_domain.repository_for(Notification)
    items = fetch_all(repo, **filters)
    items.sort(key=lambda n: n.created_at.timestamp() if n.created_at else 0, reverse=True)
    return items[:limit]


def unread_in_app(user_id) -> list[Notification]:
    repo = current_domain.repository_for(Notification)
    items = fetch_all(repo, user_id=str(user_id), channel=NotificationChannel.IN_APP.value)
    return [n for n in items if n.status in _UNREAD]


def unread_count(user_id) -> int:
    return len(unread_in_app(user_id))


@storefront.command(part_of="Notification")
class MarkNotificationRead:
    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)


@storefront.command(part_of="Notification")
class MarkAllNotificationsRead:
    user_id: Identifier(required=True)


@storefront.command_handler(part_of=Notification)
class ReadTrackingHandler:
    @handle(MarkNotificationRead)
    def mark_read(self, command: MarkNotificationRead):
        repo = current_domain.repository_for(Notification)
        notification = repo.get(command.notification_id)
        # Hide other users' notifications behind a not-found.
        if str(notification.user_id) != str(command.user_id):
            raise ObjectNotFoundError(f"Notification with id {command.notification_id} does not exist")

        notification.mark_read()
        repo.add(notification)

    @handle(MarkAllNotificationsRead)
    def mark_all_read(self, command: MarkAllNotificationsRead):
        repo = current_domain.repository_for(Notification)
        unread = unread_in_app(command.user_id)
        for notification in unread:
            notification.mark_read()
            repo.add(notification)
        return len(unread)
