"""NotificationPreference: channel gating and quiet hours.

America/Mexico_City is UTC-6 all year, so 22:00 local is 04:00 UTC.
"""

from datetime import UTC, datetime
from zoneinfo import ZoneInfoNotFoundError

import pytest
from protean.exceptions import ValidationError

from storefront.notifications.preference.preference import NotificationPreference


def _prefs(**kwargs):
    return NotificationPreference.create_default(user_id="user-001", **kwargs)


class TestAllows:
    def test_transactional_on_every_channel(self):
        prefs = _prefs()
        for channel in ("email", "sms", "push"):
            assert prefs.allows("order_shipped", channel)

    def test_marketing_is_email_only(self):
        prefs = _prefs()
        assert prefs.allows("promotion", "email")
        assert not prefs.allows("promotion", "sms")

    def test_in_app_always_allowed(self):
        prefs = _prefs()
        prefs.set_type_channels("promotion", [])
        assert prefs.allows("promotion", "in_app")

    def test_disabled_channel(self):
        prefs = _prefs()
        prefs.set_channel_enabled("sms", False)
        assert not prefs.allows("order_shipped", "sms")

    def test_type_channels_override(self):
        prefs = _prefs()
        prefs.set_type_channels("order_shipped", ["push"])
        assert not prefs.allows("order_shipped", "email")
        assert prefs.allows("order_shipped", "push")

    def test_unknown_channel_rejected(self):
        with pytest.raises(ValidationError):
            _prefs().set_type_channels("order_shipped", ["pigeon"])

    def test_unknown_timezone_rejected(self):
        with pytest.raises(ZoneInfoNotFoundError):
            _prefs(timezone="Mars/Olympus_Mons")


class TestAddressFor:
    def test_contact_points(self):
        prefs = _prefs(email="ana@example.com", phone="5512345678", device_token="tok-1")
        assert prefs.address_for("email") == "ana@example.com"
        assert prefs.address_for("sms") == "5512345678"
        assert prefs.address_for("push") == "tok-1"
        assert prefs.address_for("in_app") is None


class TestQuietHours:
    @pytest.fixture()
    def prefs(self):
        prefs = _prefs()
        prefs.set_quiet_hours("sms", "22:00", "08:00")
        return prefs

    def test_inside_before_midnight_resumes_next_morning(self, prefs):
        # 23:00 local on March 9th
        now = datetime(2026, 3, 10, 5, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("sms", now) == datetime(2026, 3, 10, 14, 0, tzinfo=UTC)

    def test_inside_after_midnight_resumes_same_morning(self, prefs):
        # 06:00 local
        now = datetime(2026, 3, 10, 12, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("sms", now) == datetime(2026, 3, 10, 14, 0, tzinfo=UTC)

    def test_start_is_inclusive(self, prefs):
        now = datetime(2026, 3, 10, 4, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("sms", now) == datetime(2026, 3, 10, 14, 0, tzinfo=UTC)

    def test_end_is_exclusive(self, prefs):
        now = datetime(2026, 3, 10, 14, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("sms", now) is None

    def test_outside(self, prefs):
        now = datetime(2026, 3, 10, 18, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("sms", now) is None

    def test_only_the_configured_channel(self, prefs):
        now = datetime(2026, 3, 10, 5, 0, tzinfo=UTC)
        assert prefs.quiet_hours_end("email", now) is None

    def test_same_day_window(self):
        prefs = _prefs()
        prefs.set_quiet_hours("push", "13:00", "15:00")
        now = datetime(2026, 3, 10, 19, 30, tzinfo=UTC)  # 13:30 local
        assert prefs.quiet_hours_end("push", now) == datetime(2026, 3, 10, 21, 0, tzinfo=UTC)

    def test_cleared(self, prefs):
        prefs.clear_quiet_hours("sms")
        assert prefs.quiet_hours_end("sms", datetime(2026, 3, 10, 5, 0, tzinfo=UTC)) is None

    @pytest.mark.parametrize("value", ["25:00", "8", "ab:cd", ""])
    def test_invalid_times(self, value):
        with pytest.raises(ValidationError):
            _prefs().set_quiet_hours("sms", value, "08:00")
