"""
Tests for bleprov.provisioning.observers module.
"""

from unittest.mock import MagicMock

from bleprov.provisioning.models import ProvisioningRecord, ProvisioningState
from bleprov.provisioning.observers import NotificationKind, ObserverRegistry


class TestNotificationKind:
    """Tests for NotificationKind enum."""

    def test_values(self):
        """Test notification kind enum values."""
        assert NotificationKind.STATE_CHANGED.value == "state_changed"
        assert NotificationKind.PROVISIONED.value == "provisioned"


class TestObserverRegistry:
    """Tests for ObserverRegistry class."""

    def test_empty_registry_delivers_nothing(self):
        """Test notifications with no subscribers are no-ops."""
        registry = ObserverRegistry()
        registry.notify_state_changed(ProvisioningState.IDLE)
        registry.notify_provisioned(ProvisioningRecord(ssid="a", password="b"))

        assert registry.get(NotificationKind.STATE_CHANGED) is None

    def test_state_changed_delivery(self):
        """Test state change delivery."""
        registry = ObserverRegistry()
        callback = MagicMock()
        registry.register(NotificationKind.STATE_CHANGED, callback)

        registry.notify_state_changed(ProvisioningState.CONNECTED)

        callback.assert_called_once_with(ProvisioningState.CONNECTED)

    def test_provisioned_delivery(self):
        """Test provisioned delivery passes ssid and password."""
        registry = ObserverRegistry()
        callback = MagicMock()
        registry.register(NotificationKind.PROVISIONED, callback)

        registry.notify_provisioned(ProvisioningRecord(ssid="HomeWifi", password="secret123"))

        callback.assert_called_once_with("HomeWifi", "secret123")

    def test_last_registration_wins(self):
        """Test a new registration replaces the previous callback."""
        registry = ObserverRegistry()
        first, second = MagicMock(), MagicMock()
        registry.register(NotificationKind.STATE_CHANGED, first)
        registry.register(NotificationKind.STATE_CHANGED, second)

        registry.notify_state_changed(ProvisioningState.ADVERTISING)

        first.assert_not_called()
        second.assert_called_once()

    def test_slots_are_independent(self):
        """Test each kind has its own slot."""
        registry = ObserverRegistry()
        state_cb, prov_cb = MagicMock(), MagicMock()
        registry.register(NotificationKind.STATE_CHANGED, state_cb)
        registry.register(NotificationKind.PROVISIONED, prov_cb)

        registry.notify_state_changed(ProvisioningState.PROVISIONED)

        state_cb.assert_called_once()
        prov_cb.assert_not_called()

    def test_clear(self):
        """Test clearing a slot stops delivery."""
        registry = ObserverRegistry()
        callback = MagicMock()
        registry.register(NotificationKind.STATE_CHANGED, callback)
        registry.clear(NotificationKind.STATE_CHANGED)

        registry.notify_state_changed(ProvisioningState.IDLE)

        callback.assert_not_called()

    def test_callback_error_is_contained(self):
        """Test a raising callback does not propagate."""
        registry = ObserverRegistry()
        registry.register(
            NotificationKind.STATE_CHANGED, MagicMock(side_effect=ValueError("bad"))
        )

        registry.notify_state_changed(ProvisioningState.FAILED)
