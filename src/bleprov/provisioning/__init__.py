"""
BLE Wi-Fi provisioning for bleprov.

Provides the provisioning handshake:
- State machine driven by transport events
- Credential reassembly from split SSID/password events
- Single-slot observers for state changes and provisioning success
- Encrypted persistence of provisioned networks
"""

from bleprov.provisioning.assembler import CredentialAssembler
from bleprov.provisioning.models import (
    ConnectionContext,
    ConnectivityReport,
    DeviceIdentity,
    ProvisioningRecord,
    ProvisioningState,
)
from bleprov.provisioning.observers import NotificationKind, ObserverRegistry
from bleprov.provisioning.pump import EventPump
from bleprov.provisioning.service import ProvisioningStateMachine
from bleprov.provisioning.store import (
    CredentialStore,
    EncryptedFileCredentialStore,
    MemoryCredentialStore,
)
from bleprov.provisioning.transport import (
    AdvertisingController,
    TransportEventHandler,
    TransportStack,
)

__all__ = [
    "AdvertisingController",
    "ConnectionContext",
    "ConnectivityReport",
    "CredentialAssembler",
    "CredentialStore",
    "DeviceIdentity",
    "EncryptedFileCredentialStore",
    "EventPump",
    "MemoryCredentialStore",
    "NotificationKind",
    "ObserverRegistry",
    "ProvisioningRecord",
    "ProvisioningState",
    "ProvisioningStateMachine",
    "TransportEventHandler",
    "TransportStack",
]
