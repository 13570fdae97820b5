"""Domain events for the Notification aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Notification")
class NotificationCreated:
    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    channel: String(required=True)
    priority: String(required=True)
    scheduled_for: DateTime()
    created_at: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationSent:
    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel: String(required=True)
    external_message_id: String()
    sent_at: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationDelivered:
    __version__ = 1

    notification_id: Identifier(required=True)
    delivered_at: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationRead:
    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    read_at: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationFailed:
    __version__ = 1

    notification_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel: String(required=True)
    reason: String(required=True)
    retry_count: Integer(required=True)
    max_retries: Integer(required=True)
    next_attempt_at: DateTime()
    failed_at: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationDeferred:
    """Sending was postponed until the recipient's quiet hours end."""

    __version__ = 1

    notification_id: Identifier(required=True)
    channel: String(required=True)
    deferred_until: DateTime(required=True)


@storefront.event(part_of="Notification")
class NotificationRetried:
    __version__ = 1

    notification_id: Identifier(required=True)
    retry_count: Integer(required=True)
    retried_at: DateTime(required=True)
