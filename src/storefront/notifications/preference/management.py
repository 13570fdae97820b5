"""Preference management commands + handlers — channels per type, channel switches, quiet hours."""

import json

from protean.fields import Boolean, Identifier, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront.domain import storefront
from storefront.notifications.preference.preference import NotificationPreference


def preferences_for(user_id) -> NotificationPreference:
    """Load a user's preferences, creating (and persisting) the defaults on first use."""
    repo = current_domain.repository_for(NotificationPreference)
    prefs = repo._dao.query.filter(user_id=str(user_id)).all().items
    if prefs:
        return prefs[0]

    preference = NotificationPreference.create_default(user_id=str(user_id))
    repo.add(preference)
    return preference


@storefront.command(part_of="NotificationPreference")
class RegisterContactPoints:
    """Record where to reach a user (email, phone, device token)."""

    user_id: Identifier(required=True)
    email: String(max_length=254)
    phone: String(max_length=50)
    device_token: String(max_length=500)
    timezone: String(max_length=64)


@storefront.command(part_of="NotificationPreference")
class SetTypeChannels:
    user_id: Identifier(required=True)
    notification_type: String(required=True)
    channels: Text(required=True)  # JSON list of channels


@storefront.command(part_of="NotificationPreference")
class ToggleChannel:
    user_id: Identifier(required=True)
    channel: String(required=True)
    enabled: Boolean(required=True)


@storefront.command(part_of="NotificationPreference")
class SetQuietHours:
    user_id: Identifier(required=True)
    channel: String(required=True)
    start: String(required=True, max_length=5)
    end: String(required=True, max_length=5)


@storefront.command(part_of="NotificationPreference")
class ClearQuietHours:
    user_id: Identifier(required=True)
    channel: String(required=True)


@storefront.command_handler(part_of=NotificationPreference)
class ManagePreferencesHandler:
    @handle(RegisterContactPoints)
    def register_contact_points(self, command: RegisterContactPoints):
        repo = current_domain.repository_for(NotificationPreference)
        preference = preferences_for(command.user_id)
        for field_name in ("email", "phone", "device_token", "timezone"):
            value = getattr(command, field_name)
            if value:
                setattr(preference, field_name, value)
        repo.add(preference)

    @handle(SetTypeChannels)
    def set_type_channels(self, command: SetTypeChannels):
        repo = current_domain.repository_for(NotificationPreference)
        preference = preferences_for(command.user_id)
        preference.set_type_channels(command.notification_type, json.loads(command.channels))
        repo.add(preference)

    @handle(ToggleChannel)
    def toggle_channel(self, command: ToggleChannel):
        repo = current_domain.repository_for(NotificationPreference)
        preference = preferences_for(command.user_id)
        preference.set_channel_enabled(command.channel, command.enabled)
        repo.add(preference)

    @handle(SetQuietHours)
    def set_quiet_hours(self, command: SetQuietHours):
        repo = current_domain.repository_for(NotificationPreference)
        preference = preferences_for(command.user_id)
        preference.set_quiet_hours(command.channel, command.start, command.end)
        repo.add(preference)

    @handle(ClearQuietHours)
    def clear_quiet_hours(self, command: ClearQuietHours):
        repo = current_domain.repository_for(NotificationPreference)
        preference = preferences_for(command.user_id)
        preference.clear_quiet_hours(command.channel)
        repo.add(preference)
