"""Domain events for the NotificationPreference aggregate."""

from protean.fields import Boolean, DateTime, Identifier, String, Text

from storefront.domain import storefront


@storefront.event(part_of="NotificationPreference")
class PreferencesCreated:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    timezone: String(required=True)
    created_at: DateTime(required=True)


@storefront.event(part_of="NotificationPreference")
class TypeChannelsUpdated:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    channels: Text(required=True)  # JSON list
    updated_at: DateTime(required=True)


@storefront.event(part_of="NotificationPreference")
class ChannelToggled:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel: String(required=True)
    enabled: Boolean(required=True)
    updated_at: DateTime(required=True)


@storefront.event(part_of="NotificationPreference")
class QuietHoursSet:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel: String(required=True)
    start: String(required=True)
    end: String(required=True)
    updated_at: DateTime(required=True)


@storefront.event(part_of="NotificationPreference")
class QuietHoursCleared:
    __version__ = 1

    preference_id: Identifier(required=True)
    user_id: Identifier(required=True)
    channel: String(required=True)
    cleared_at: DateTime(required=True)
