"""Channel provider registry — one provider per channel.

Fake providers are used unless a real one is injected with
``set_channel`` (for example at application start-up).
"""

from storefront.notifications.notification.notification import NotificationChannel

_channel_instances: dict[str, object] = {}


def get_channel(channel_type: str):
    """Return the provider for ``channel_type`` ("email", "sms" or "push")."""
    if channel_type not in _channel_instances:
        if channel_type == NotificationChannel.EMAIL.value:
            from storefront.notifications.channel.fakes import FakeEmailProvider

            _channel_instances[channel_type] = FakeEmailProvider()
        elif channel_type == NotificationChannel.SMS.value:
            from storefront.notifications.channel.fakes import FakeSMSProvider

            _channel_instances[channel_type] = FakeSMSProvider()
        elif channel_type == NotificationChannel.PUSH.value:
            from storefront.notifications.channel.fakes import FakePushProvider

            _channel_instances[channel_type] = FakePushProvider()
        else:
            raise ValueError(f"Unknown channel type: {channel_type}")

    return _channel_instances[channel_type]


def set_channel(channel_type: str, provider) -> None:
    """Install a provider for a channel."""
    _channel_instances[channel_type] = provider


def reset_channels():
    """Reset all channel singletons (useful for testing)."""
    _channel_instances.clear()
