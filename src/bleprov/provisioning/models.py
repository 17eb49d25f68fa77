"""
Data model for the provisioning handshake.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

# Longest name the BLE advertising payload leaves room for.
DEVICE_NAME_MAX_BYTES = 29

# 802.11 limits on credential lengths.
SSID_MAX_BYTES = 32
PASSWORD_MAX_BYTES = 64


class ProvisioningState(Enum):
    """Device provisioning state."""
    IDLE = "idle"
    ADVERTISING = "advertising"
    CONNECTED = "connected"
    PROVISIONING = "provisioning"
    PROVISIONED = "provisioned"
    FAILED = "failed"


class WifiMode(Enum):
    """Wi-Fi operating mode reported to the peer."""
    NULL = "null"
    STATION = "station"
    SOFTAP = "softap"
    STATION_SOFTAP = "station_softap"


class StationStatus(Enum):
    """Station connection status reported to the peer."""
    SUCCESS = "success"
    FAIL = "fail"
    CONNECTING = "connecting"
    NO_IP = "no_ip"


@dataclass(frozen=True)
class DeviceIdentity:
    """Advertised device name, stored as the exact bytes sent on air."""
    raw: bytes
    max_bytes: int = DEVICE_NAME_MAX_BYTES

    @classmethod
    def from_name(cls, name: str, max_bytes: int = DEVICE_NAME_MAX_BYTES) -> "DeviceIdentity":
        """
        Build an identity, truncating the UTF-8 encoding to ``max_bytes``.

        Truncation keeps the leading bytes even if that splits a multi-byte
        character; ``name`` drops the partial character when decoding.
        """
        encoded = name.encode("utf-8")
        return cls(raw=encoded[:max_bytes], max_bytes=max_bytes)

    @property
    def name(self) -> str:
        return self.raw.decode("utf-8", errors="ignore")

    def __len__(self) -> int:
        return len(self.raw)


@dataclass(frozen=True)
class ConnectionContext:
    """Transport-assigned handle for the single active peer session."""
    conn_id: int
    peer_address: Optional[str] = None


@dataclass
class CredentialFragment:
    """Partially assembled credential pair."""
    ssid: Optional[str] = None
    password: Optional[str] = None

    @property
    def is_complete(self) -> bool:
        return self.ssid is not None and self.password is not None

    @property
    def is_empty(self) -> bool:
        return self.ssid is None and self.password is None

    def clear(self) -> None:
        self.ssid = None
        self.password = None


@dataclass(frozen=True)
class ProvisioningRecord:
    """Finalized credentials handed to the credential store."""
    ssid: str
    password: str = field(repr=False)
    provisioned_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ssid": self.ssid,
            "password": self.password,
            "provisioned_at": self.provisioned_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProvisioningRecord":
        provisioned_at = data.get("provisioned_at")
        if provisioned_at:
            return cls(
                ssid=data["ssid"],
                password=data["password"],
                provisioned_at=datetime.fromisoformat(provisioned_at),
            )
        return cls(ssid=data["ssid"], password=data["password"])


@dataclass(frozen=True)
class ConnectivityReport:
    """Reply to a peer's status query."""
    mode: WifiMode = WifiMode.STATION
    status: StationStatus = StationStatus.SUCCESS
    ssid: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "status": self.status.value,
            "ssid": self.ssid,
        }
