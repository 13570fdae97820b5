"""NotificationPreference aggregate (CQRS) — what a user wants to hear about, and when.

Per notification type, the set of channels the user accepts. Per channel,
an on/off switch and an optional quiet window ("22:00"–"08:00") evaluated
in the user's timezone. In-app notifications are always accepted; they
only land in the user's inbox.
"""

import json
from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo

from protean.exceptions import ValidationError
from protean.fields import DateTime, Identifier, String, Text

from storefront.domain import storefront
from storefront.notifications.notification.notification import NotificationChannel, NotificationType
from storefront.notifications.preference.events import (
    ChannelToggled,
    PreferencesCreated,
    QuietHoursCleared,
    QuietHoursSet,
    TypeChannelsUpdated,
)

DEFAULT_TIMEZONE = "America/Mexico_City"

_EMAIL = NotificationChannel.EMAIL.value
_SMS = NotificationChannel.SMS.value
_PUSH = NotificationChannel.PUSH.value
_ALL = [_EMAIL, _SMS, _PUSH]

DEFAULT_TYPE_CHANNELS = {
    NotificationType.ORDER_CONFIRMED.value: _ALL,
    NotificationType.ORDER_SHIPPED.value: _ALL,
    NotificationType.ORDER_DELIVERED.value: _ALL,
    NotificationType.ORDER_CANCELLED.value: _ALL,
    NotificationType.SHIPMENT_UPDATE.value: _ALL,
    NotificationType.PAYMENT_SUCCESS.value: _ALL,
    NotificationType.PAYMENT_FAILED.value: _ALL,
    NotificationType.WELCOME.value: [_EMAIL, _PUSH],
    NotificationType.PRODUCT_RECOMMENDATION.value: [_EMAIL],
    NotificationType.PRICE_DROP.value: [_EMAIL, _PUSH],
    NotificationType.BACK_IN_STOCK.value: [_EMAIL, _PUSH],
    NotificationType.CART_ABANDONMENT.value: [_EMAIL],
    NotificationType.PROMOTION.value: [_EMAIL],
    NotificationType.SECURITY_ALERT.value: _ALL,
    NotificationType.ACCOUNT_UPDATE.value: [_EMAIL],
    NotificationType.REVIEW_REMINDER.value: [_EMAIL],
}


def _parse_hhmm(value: str, label: str) -> time:
    parts = (value or "").split(":")
    try:
        if len(parts) != 2:
            raise ValueError
        return time(int(parts[0]), int(parts[1]))
    except ValueError:
        raise ValidationError({f"quiet_hours_{label}": [f"Invalid time format: {value}. Use HH:MM"]}) from None


@storefront.aggregate
class NotificationPreference:
    user_id: Identifier(required=True, unique=True)

    # Contact points used as recipients
    email: String(max_length=254)
    phone: String(max_length=50)
    device_token: String(max_length=500)

    type_channels: Text()  # JSON {notification_type: [channel, ...]}
    channel_settings: Text()  # JSON {channel: {"enabled": bool, "quiet_hours": {...}}}
    timezone: String(max_length=64, default=DEFAULT_TIMEZONE)

    created_at: DateTime()
    updated_at: DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create_default(cls, user_id, email=None, phone=None, device_token=None, timezone=DEFAULT_TIMEZONE):
        """Transactional types on every channel, marketing on email (and push for a few), no quiet hours."""
        ZoneInfo(timezone)  # Reject unknown zones early

        now = datetime.now(UTC)
        preference = cls(
            user_id=user_id,
            email=email,
            phone=phone,
            device_token=device_token,
            type_channels=json.dumps(DEFAULT_TYPE_CHANNELS),
            channel_settings=json.dumps({channel: {"enabled": True} for channel in _ALL}),
            timezone=timezone,
            created_at=now,
            updated_at=now,
        )
        preference.raise_(
            PreferencesCreated(
                preference_id=str(preference.id),
                user_id=str(user_id),
                timezone=timezone,
                created_at=now,
            )
        )
        return preference

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def _types(self) -> dict:
        return json.loads(self.type_channels) if self.type_channels else {}

    def _settings(self) -> dict:
        return json.loads(self.channel_settings) if self.channel_settings else {}

    def allows(self, notification_type: str, channel: str) -> bool:
        """Whether ``channel`` may carry ``notification_type`` for this user."""
        if channel == NotificationChannel.IN_APP.value:
            return True
        if not self._settings().get(channel, {}).get("enabled", False):
            return False
        return channel in self._types().get(notification_type, [])

    def address_for(self, channel: str) -> str | None:
        return {
            _EMAIL: self.email,
            _SMS: self.phone,
            _PUSH: self.device_token,
        }.get(channel)

    def quiet_hours_end(self, channel: str, now: datetime) -> datetime | None:
        """If ``now`` falls inside the channel's quiet window, when the window ends (UTC).

        The window is ``[start, end)`` in the user's timezone and may wrap
        midnight. The returned time is the next occurrence of ``end``, which
        for a window entered before midnight is the next day.
        """
        window = self._settings().get(channel, {}).get("quiet_hours") or {}
        if not window.get("enabled"):
            return None

        start = _parse_hhmm(window.get("start"), "start")
        end = _parse_hhmm(window.get("end"), "end")
        local = now.astimezone(ZoneInfo(self.timezone or DEFAULT_TIMEZONE))
        current = local.time().replace(tzinfo=None)

        if start <= end:
            inside = start <= current < end
        else:
            inside = current >= start or current < end
        if not inside:
            return None

        resume = local.replace(hour=end.hour, minute=end.minute, second=0, microsecond=0)
        if resume <= local:
            resume = resume + timedelta(days=1)
        return resume.astimezone(UTC)

    # -------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------
    def set_type_channels(self, notification_type, channels):
        valid = {c.value for c in NotificationChannel}
        unknown = [c for c in channels if c not in valid]
        if unknown:
            raise ValidationError({"channels": [f"Unknown channel(s): {', '.join(unknown)}"]})
        NotificationType(notification_type)

        types = self._types()
        types[notification_type] = list(channels)
        now = datetime.now(UTC)
        self.type_channels = json.dumps(types)
        self.updated_at = now
        self.raise_(
            TypeChannelsUpdated(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                notification_type=notification_type,
                channels=json.dumps(list(channels)),
                updated_at=now,
            )
        )

    def set_channel_enabled(self, channel, enabled):
        settings = self._settings()
        settings.setdefault(channel, {})["enabled"] = bool(enabled)
        now = datetime.now(UTC)
        self.channel_settings = json.dumps(settings)
        self.updated_at = now
        self.raise_(
            ChannelToggled(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                channel=channel,
                enabled=bool(enabled),
                updated_at=now,
            )
        )

    def set_quiet_hours(self, channel, start, end):
        if not start or not end:
            raise ValidationError({"quiet_hours": ["Both start and end times are required"]})
        _parse_hhmm(start, "start")
        _parse_hhmm(end, "end")

        settings = self._settings()
        settings.setdefault(channel, {"enabled": True})["quiet_hours"] = {"enabled": True, "start": start, "end": end}
        now = datetime.now(UTC)
        self.channel_settings = json.dumps(settings)
        self.updated_at = now
        self.raise_(
            QuietHoursSet(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                channel=channel,
                start=start,
                end=end,
                updated_at=now,
            )
        )

    def clear_quiet_hours(self, channel):
        settings = self._settings()
        settings.get(channel, {}).pop("quiet_hours", None)
        now = datetime.now(UTC)
        self.channel_settings = json.dumps(settings)
        self.updated_at = now
        self.raise_(
            QuietHoursCleared(
                preference_id=str(self.id),
                user_id=str(self.user_id),
                channel=channel,
                cleared_at=now,
            )
        )
