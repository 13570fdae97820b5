"""Notification aggregate (CQRS) — one message to one user over one channel.

State Machine:
    PENDING → SENT → DELIVERED → READ
    PENDING → SENT → READ
    PENDING → FAILED → (retry) → PENDING     while retry_count < max_retries
    FAILED stays terminal once retries are exhausted

Backoff lives in ``scheduled_for``: a failure with attempts left pushes it
``2^retry_count`` minutes out and the retry sweep waits for it, so a
restart loses nothing.
"""

import json
from datetime import UTC, datetime, timedelta
from enum import Enum

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront
from storefront.notifications.notification.events import (
    NotificationCreated,
    NotificationDeferred,
    NotificationDelivered,
    NotificationFailed,
    NotificationRead,
    NotificationRetried,
    NotificationSent,
)

RETENTION = timedelta(days=30)


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class NotificationType(Enum):
    ORDER_CONFIRMED = "order_confirmed"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"
    ORDER_CANCELLED = "order_cancelled"
    SHIPMENT_UPDATE = "shipment_update"
    PAYMENT_SUCCESS = "payment_success"
    PAYMENT_FAILED = "payment_failed"
    WELCOME = "welcome"
    PRODUCT_RECOMMENDATION = "product_recommendation"
    PRICE_DROP = "price_drop"
    BACK_IN_STOCK = "back_in_stock"
    CART_ABANDONMENT = "cart_abandonment"
    PROMOTION = "promotion"
    SECURITY_ALERT = "security_alert"
    ACCOUNT_UPDATE = "account_update"
    REVIEW_REMINDER = "review_reminder"


class NotificationChannel(Enum):
    EMAIL = "email"
    SMS = "sms"
    PUSH = "push"
    IN_APP = "in_app"


class NotificationStatus(Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"
    READ = "read"


class NotificationPriority(Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


# ---------------------------------------------------------------------------
# State Machine
# ---------------------------------------------------------------------------
_VALID_TRANSITIONS = {
    NotificationStatus.PENDING: {NotificationStatus.SENT, NotificationStatus.FAILED},
    NotificationStatus.SENT: {NotificationStatus.DELIVERED, NotificationStatus.READ},
    NotificationStatus.DELIVERED: {NotificationStatus.READ},
    NotificationStatus.FAILED: {NotificationStatus.PENDING},  # Via retry
    NotificationStatus.READ: set(),  # Terminal
}


def backoff_delay(retry_count: int) -> timedelta:
    """Delay before the next attempt after ``retry_count`` failures."""
    return timedelta(minutes=2**retry_count)


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


# ---------------------------------------------------------------------------
# Aggregate Root
# ---------------------------------------------------------------------------
@storefront.aggregate
class Notification:
    user_id: Identifier(required=True)
    notification_type: String(choices=NotificationType, required=True)
    channel: String(choices=NotificationChannel, required=True)
    priority: String(choices=NotificationPriority, default=NotificationPriority.NORMAL.value)

    # Content
    recipient: String(max_length=254)  # email, phone or device token
    title: String(required=True, max_length=200)
    message: Text(required=True)
    data: Text()  # JSON

    status: String(choices=NotificationStatus, default=NotificationStatus.PENDING.value)

    # Scheduling; null means send now
    scheduled_for: DateTime()

    # Delivery tracking
    external_message_id: String(max_length=255)
    error_message: String(max_length=500)
    sent_at: DateTime()
    delivered_at: DateTime()
    read_at: DateTime()

    # Retry
    retry_count: Integer(default=0)
    max_retries: Integer(default=3)

    expires_at: DateTime()
    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(
        cls,
        user_id,
        notification_type,
        channel,
        title,
        message,
        recipient=None,
        data=None,
        priority=NotificationPriority.NORMAL.value,
        scheduled_for=None,
        max_retries=3,
    ):
        now = datetime.now(UTC)
        notification = cls(
            user_id=user_id,
            notification_type=notification_type,
            channel=channel,
            priority=priority,
            recipient=recipient,
            title=title,
            message=message,
            data=json.dumps(data or {}),
            status=NotificationStatus.PENDING.value,
            scheduled_for=scheduled_for,
            retry_count=0,
            max_retries=max_retries,
            expires_at=now + RETENTION,
            created_at=now,
            updated_at=now,
        )
        notification.raise_(
            NotificationCreated(
                notification_id=str(notification.id),
                user_id=str(user_id),
                notification_type=notification_type,
                channel=channel,
                priority=priority,
                scheduled_for=scheduled_for,
                created_at=now,
            )
        )
        return notification

    # -------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------
    @property
    def data_dict(self) -> dict:
        return json.loads(self.data) if self.data else {}

    @property
    def retries_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries

    def is_due(self, as_of: datetime) -> bool:
        return self.scheduled_for is None or _as_utc(self.scheduled_for) <= _as_utc(as_of)

    # -------------------------------------------------------------------
    # State transitions
    # -------------------------------------------------------------------
    def _assert_can_transition(self, target_status):
        current = NotificationStatus(self.status)
        if target_status not in _VALID_TRANSITIONS.get(current, set()):
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target_status.value}"]})

    def mark_sent(self, external_message_id=None, sent_at=None):
        self._assert_can_transition(NotificationStatus.SENT)

        now = sent_at or datetime.now(UTC)
        self.status = NotificationStatus.SENT.value
        self.external_message_id = external_message_id
        self.error_message = None
        self.sent_at = now
        self.updated_at = now
        self.raise_(
            NotificationSent(
                notification_id=str(self.id),
                user_id=str(self.user_id),
                channel=self.channel,
                external_message_id=external_message_id,
                sent_at=now,
            )
        )

    def mark_delivered(self, delivered_at=None):
        self._assert_can_transition(NotificationStatus.DELIVERED)

        now = delivered_at or datetime.now(UTC)
        self.status = NotificationStatus.DELIVERED.value
        self.delivered_at = now
        self.updated_at = now
        self.raise_(NotificationDelivered(notification_id=str(self.id), delivered_at=now))

    def mark_read(self, read_at=None):
        self._assert_can_transition(NotificationStatus.READ)

        now = read_at or datetime.now(UTC)
        self.status = NotificationStatus.READ.value
        self.read_at = now
        self.updated_at = now
        self.raise_(NotificationRead(notification_id=str(self.id), user_id=str(self.user_id), read_at=now))

    def mark_failed(self, reason, failed_at=None):
        """Record a failed attempt and, if attempts remain, when to try again."""
        self._assert_can_transition(NotificationStatus.FAILED)

        now = failed_at or datetime.now(UTC)
        self.status = NotificationStatus.FAILED.value
        self.error_message = (reason or "")[:500]
        self.retry_count = self.retry_count + 1
        self.scheduled_for = None if self.retries_exhausted else now + backoff_delay(self.retry_count)
        self.updated_at = now
        self.raise_(
            NotificationFailed(
                notification_id=str(self.id),
                user_id=str(self.user_id),
                channel=self.channel,
                reason=self.error_message,
                retry_count=self.retry_count,
                max_retries=self.max_retries,
                next_attempt_at=self.scheduled_for,
                failed_at=now,
            )
        )

    def defer(self, until):
        """Postpone a pending notification (quiet hours)."""
        if NotificationStatus(self.status) != NotificationStatus.PENDING:
            raise ValidationError({"status": ["Only pending notifications can be deferred"]})

        self.scheduled_for = until
        self.updated_at = datetime.now(UTC)
        self.raise_(NotificationDeferred(notification_id=str(self.id), channel=self.channel, deferred_until=until))

    def retry(self):
        if NotificationStatus(self.status) != NotificationStatus.FAILED:
            raise ValidationError({"status": ["Only failed notifications can be retried"]})
        if self.retries_exhausted:
            raise ValidationError({"retry_count": ["Maximum retry attempts exceeded"]})

        now = datetime.now(UTC)
        self.status = NotificationStatus.PENDING.value
        self.scheduled_for = None
        self.updated_at = now
        self.raise_(NotificationRetried(notification_id=str(self.id), retry_count=self.retry_count, retried_at=now))
