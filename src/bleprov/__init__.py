"""
bleprov - BLE Wi-Fi provisioning for headless devices

Takes a device from unconfigured and discoverable to holding Wi-Fi
credentials over a BLE control channel, and reads the status frame of an
attached peripheral controller over serial.
"""

__version__ = "1.0.0"
__author__ = "bleprov Team"

from bleprov.core.agent import ProvisioningAgent
from bleprov.core.config import Config
from bleprov.provisioning.models import ProvisioningState
from bleprov.provisioning.service import ProvisioningStateMachine

__all__ = [
    "ProvisioningAgent",
    "Config",
    "ProvisioningState",
    "ProvisioningStateMachine",
    "__version__",
]
