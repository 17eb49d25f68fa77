"""
Serial frame layouts exchanged with the peripheral controller.

Status frame (peripheral -> device), 8 bytes minimum::

    FC  xx  xx  01  <brake>  <seatbelt>  xx  0D

Control frame (device -> peripheral), 13 bytes::

    FA  00  00 08  06  <brake> <l1> <l2> <l3> <l4> <l5> <driver>  0D
"""

from dataclasses import dataclass
from typing import Tuple

from bleprov.exceptions import FrameError

STATUS_HEADER = 0xFC
STATUS_TYPE = 0x01
STATUS_MIN_LENGTH = 8

CONTROL_HEADER = 0xFA
CONTROL_ADDRESS = 0x00
CONTROL_LENGTH = (0x00, 0x08)
CONTROL_COMMAND = 0x06
CONTROL_FRAME_SIZE = 13

FRAME_END = 0x0D
FLAG_ON = 0x11
FLAG_OFF = 0x00

LIGHT_COUNT = 5


@dataclass(frozen=True)
class PeripheralStatus:
    """State reported by the peripheral."""
    brake_on: bool = False
    seatbelt_on: bool = False

    def to_dict(self) -> dict:
        return {
            "brake_on": self.brake_on,
            "seatbelt_on": self.seatbelt_on,
        }


@dataclass(frozen=True)
class ControlState:
    """Outputs commanded on the peripheral."""
    brake: bool = False
    lights: Tuple[bool, bool, bool, bool, bool] = (False, False, False, False, False)
    driver_light: bool = False

    def __post_init__(self):
        if len(self.lights) != LIGHT_COUNT:
            raise ValueError(f"Expected {LIGHT_COUNT} light flags, got {len(self.lights)}")

    def to_dict(self) -> dict:
        return {
            "brake": self.brake,
            "lights": list(self.lights),
            "driver_light": self.driver_light,
        }


def _check_status_frame(data: bytes) -> None:
    if len(data) < STATUS_MIN_LENGTH:
        raise FrameError(f"Status frame too short: {len(data)} bytes")
    if data[0] != STATUS_HEADER:
        raise FrameError(f"Bad status frame header 0x{data[0]:02X}")
    if data[3] != STATUS_TYPE:
        raise FrameError(f"Bad status frame type 0x{data[3]:02X}")
    if data[7] != FRAME_END:
        raise FrameError(f"Bad status frame terminator 0x{data[7]:02X}")


def parse_status_frame(data: bytes, strict: bool = False) -> PeripheralStatus:
    """
    Decode a status frame.

    Args:
        data: Raw bytes read from the serial port
        strict: Raise instead of returning the all-off status

    Returns:
        Decoded status; all flags off when the frame is invalid and
        ``strict`` is False.

    Raises:
        FrameError: If ``strict`` and the frame does not match the layout.
    """
    try:
        _check_status_frame(data)
    except FrameError:
        if strict:
            raise
        return PeripheralStatus()

    return PeripheralStatus(
        brake_on=bool(data[4] & 0x01),
        seatbelt_on=bool(data[5] & 0x01),
    )


def encode_control_frame(state: ControlState) -> bytes:
    """Encode a control frame for the peripheral."""
    flags = (state.brake,) + tuple(state.lights) + (state.driver_light,)
    return bytes(
        [CONTROL_HEADER, CONTROL_ADDRESS, *CONTROL_LENGTH, CONTROL_COMMAND]
        + [FLAG_ON if flag else FLAG_OFF for flag in flags]
        + [FRAME_END]
    )
