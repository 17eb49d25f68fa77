"""
Tests for bleprov.provisioning.models module.
"""

from datetime import datetime, timezone

import pytest

from bleprov.provisioning.models import (
    DEVICE_NAME_MAX_BYTES,
    ConnectivityReport,
    CredentialFragment,
    DeviceIdentity,
    ProvisioningRecord,
    ProvisioningState,
    StationStatus,
    WifiMode,
)


class TestProvisioningState:
    """Tests for ProvisioningState enum."""

    def test_values(self):
        """Test provisioning state enum values."""
        assert ProvisioningState.IDLE.value == "idle"
        assert ProvisioningState.ADVERTISING.value == "advertising"
        assert ProvisioningState.CONNECTED.value == "connected"
        assert ProvisioningState.PROVISIONING.value == "provisioning"
        assert ProvisioningState.PROVISIONED.value == "provisioned"
        assert ProvisioningState.FAILED.value == "failed"

    def test_six_states(self):
        assert len(ProvisioningState) == 6


class TestDeviceIdentity:
    """Tests for DeviceIdentity dataclass."""

    def test_short_name_unchanged(self):
        """Test names within the limit are kept."""
        identity = DeviceIdentity.from_name("Device-ABC")
        assert identity.name == "Device-ABC"
        assert identity.raw == b"Device-ABC"

    def test_default_limit(self):
        assert DEVICE_NAME_MAX_BYTES == 29

    @pytest.mark.parametrize("length", [29, 30, 64])
    def test_truncation_to_limit(self, length):
        """Test long names keep exactly the first 29 bytes."""
        name = "".join(chr(ord("a") + i % 26) for i in range(length))
        identity = DeviceIdentity.from_name(name)

        assert len(identity) == 29
        assert identity.raw == name.encode()[:29]

    def test_custom_limit(self):
        identity = DeviceIdentity.from_name("abcdefgh", max_bytes=4)
        assert identity.raw == b"abcd"

    def test_truncation_splits_multibyte(self):
        """Test truncation counts bytes, not characters."""
        identity = DeviceIdentity.from_name("ééé", max_bytes=5)

        assert identity.raw == "ééé".encode()[:5]
        assert identity.name == "éé"

    def test_immutable(self):
        identity = DeviceIdentity.from_name("x")
        with pytest.raises(AttributeError):
            identity.raw = b"y"


class TestCredentialFragment:
    """Tests for CredentialFragment dataclass."""

    def test_default_values(self):
        fragment = CredentialFragment()
        assert fragment.is_empty
        assert not fragment.is_complete

    def test_complete_and_clear(self):
        fragment = CredentialFragment(ssid="a", password="b")
        assert fragment.is_complete

        fragment.clear()
        assert fragment.is_empty


class TestProvisioningRecord:
    """Tests for ProvisioningRecord dataclass."""

    def test_password_hidden_from_repr(self):
        """Test repr never contains the password."""
        record = ProvisioningRecord(ssid="HomeWifi", password="secret123")
        assert "secret123" not in repr(record)
        assert "HomeWifi" in repr(record)

    def test_dict_conversion(self):
        """Test to_dict/from_dict preserve every field."""
        when = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
        record = ProvisioningRecord(ssid="HomeWifi", password="secret123", provisioned_at=when)

        restored = ProvisioningRecord.from_dict(record.to_dict())

        assert restored == record

    def test_from_dict_without_timestamp(self):
        record = ProvisioningRecord.from_dict({"ssid": "a", "password": "b"})
        assert record.provisioned_at is not None


class TestConnectivityReport:
    """Tests for ConnectivityReport dataclass."""

    def test_default_values(self):
        report = ConnectivityReport()
        assert report.mode == WifiMode.STATION
        assert report.status == StationStatus.SUCCESS
        assert report.to_dict() == {"mode": "station", "status": "success", "ssid": None}
