"""
Peripheral controller serial link.
"""

from bleprov.peripheral.frames import (
    ControlState,
    PeripheralStatus,
    encode_control_frame,
    parse_status_frame,
)
from bleprov.peripheral.monitor import StatusMonitor

__all__ = [
    "ControlState",
    "PeripheralStatus",
    "StatusMonitor",
    "encode_control_frame",
    "parse_status_frame",
]
