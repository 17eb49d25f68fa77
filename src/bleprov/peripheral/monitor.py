"""
Serial status monitor for the peripheral controller.
"""

import asyncio
import logging
import threading
from typing import Optional

import serial

from bleprov.peripheral.frames import (
    ControlState,
    PeripheralStatus,
    encode_control_frame,
    parse_status_frame,
)

logger = logging.getLogger(__name__)

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUDRATE = 115200
READ_SIZE = 128


class StatusMonitor:
    """
    Polls the peripheral's serial port and keeps the latest status.

    Each non-empty read replaces the current status, including reads that
    do not hold a valid frame (which decode as all-off).
    """

    def __init__(
        self,
        port: str = DEFAULT_PORT,
        baudrate: int = DEFAULT_BAUDRATE,
        read_timeout: float = 0.1,
        poll_interval: float = 0.05,
    ):
        self._port = port
        self._baudrate = baudrate
        self._read_timeout = read_timeout
        self._poll_interval = poll_interval

        self._serial: Optional[serial.Serial] = None
        self._status = PeripheralStatus()
        self._control = ControlState()
        self._lock = threading.Lock()
        self._task: Optional[asyncio.Task] = None
        self._running = False

    @property
    def port(self) -> str:
        return self._port

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def is_open(self) -> bool:
        return self._serial is not None

    async def open(self) -> bool:
        """Open the serial port without starting the polling task."""
        if self._serial:
            return True

        loop = asyncio.get_running_loop()
        try:
            self._serial = await loop.run_in_executor(
                None,
                lambda: serial.Serial(
                    self._port,
                    self._baudrate,
                    timeout=self._read_timeout,
                )
            )
        except (serial.SerialException, OSError) as e:
            logger.error(f"Failed to open peripheral port {self._port}: {e}")
            return False

        logger.info(f"Opened peripheral port {self._port} at {self._baudrate} baud")
        return True

    async def start(self) -> bool:
        """Open the port and start polling for status frames."""
        if self._running:
            return True

        if not await self.open():
            return False

        self._running = True
        self._task = asyncio.create_task(self._poll_loop())
        return True

    async def stop(self) -> None:
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        if self._serial:
            self._serial.close()
            self._serial = None
            logger.info(f"Closed peripheral port {self._port}")

    async def read_frame(self) -> Optional[PeripheralStatus]:
        """Read once from the port and apply the result. None if nothing arrived."""
        if not self._serial:
            logger.warning("Peripheral port not open")
            return None

        loop = asyncio.get_running_loop()
        try:
            data = await loop.run_in_executor(None, self._serial.read, READ_SIZE)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Peripheral read error: {e}")
            return None

        if not data:
            return None
        return self.process_frame(data)

    def process_frame(self, data: bytes) -> PeripheralStatus:
        """Decode raw bytes and make them the current status."""
        status = parse_status_frame(data)
        with self._lock:
            self._status = status
        return status

    def get_status(self) -> PeripheralStatus:
        with self._lock:
            status = self._status
        logger.debug(
            f"Brake: {'ON' if status.brake_on else 'OFF'}, "
            f"Seatbelt: {'ON' if status.seatbelt_on else 'OFF'}"
        )
        return status

    def set_control_state(self, state: ControlState) -> None:
        with self._lock:
            self._control = state

    def get_control_state(self) -> ControlState:
        with self._lock:
            return self._control

    async def send_control_frame(self, state: Optional[ControlState] = None) -> bool:
        """
        Write a control frame.

        Args:
            state: New outputs to command; the last commanded state is
                resent when omitted.

        Returns:
            True if the whole frame was written.
        """
        if state is not None:
            self.set_control_state(state)

        frame = encode_control_frame(self.get_control_state())
        logger.info(f"Sending control frame: {frame.hex(' ')}")

        if not self._serial:
            logger.warning("Peripheral port not open")
            return False

        loop = asyncio.get_running_loop()
        try:
            written = await loop.run_in_executor(None, self._serial.write, frame)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Peripheral write error: {e}")
            return False

        return written == len(frame)

    async def _poll_loop(self) -> None:
        while self._running:
            await self.read_frame()
            await asyncio.sleep(self._poll_interval)
