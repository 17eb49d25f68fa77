"""
bleprov Agent - composes the provisioning stack and runs it.

The agent owns the state machine, its event pump, the credential store and
the optional peripheral monitor, and provides the ``bleprov`` command line.
"""

import asyncio
import importlib
import logging
import signal
import sys
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from bleprov.core.config import Config, load_config
from bleprov.exceptions import BleprovError, ConfigError
from bleprov.peripheral.frames import ControlState
from bleprov.peripheral.monitor import StatusMonitor
from bleprov.provisioning.models import ProvisioningState
from bleprov.provisioning.pump import EventPump
from bleprov.provisioning.service import ProvisioningStateMachine
from bleprov.provisioning.store import (
    CredentialStore,
    EncryptedFileCredentialStore,
    MemoryCredentialStore,
)
from bleprov.provisioning.transport import AdvertisingController, TransportStack

logger = logging.getLogger(__name__)


def load_transport(factory_path: str, options: Optional[Dict[str, Any]] = None
                   ) -> Tuple[TransportStack, AdvertisingController]:
    """
    Build the BLE transport from a ``module:attribute`` factory path.

    The factory is called with ``options`` as keyword arguments and must
    return either one object implementing both ``TransportStack`` and
    ``AdvertisingController``, or a ``(stack, advertising)`` pair.
    """
    if not factory_path or ":" not in factory_path:
        raise ConfigError(f"Invalid transport factory '{factory_path}'")

    module_name, attr = factory_path.split(":", 1)
    try:
        module = importlib.import_module(module_name)
        factory = getattr(module, attr)
    except (ImportError, AttributeError) as e:
        raise ConfigError(f"Cannot load transport factory '{factory_path}': {e}") from e

    result = factory(**(options or {}))
    if isinstance(result, tuple):
        stack, advertising = result
    else:
        stack, advertising = result, result

    if not isinstance(stack, TransportStack):
        raise ConfigError(f"{factory_path} did not return a TransportStack")
    if not isinstance(advertising, AdvertisingController):
        raise ConfigError(f"{factory_path} did not return an AdvertisingController")

    return stack, advertising


def create_store(config: Config) -> CredentialStore:
    """Create the credential store described by the configuration."""
    if not config.store.enabled:
        logger.info("Credential persistence disabled, using in-memory store")
        return MemoryCredentialStore(max_entries=config.store.max_entries)

    return EncryptedFileCredentialStore(
        path=Path(config.store.path),
        key_path=Path(config.store.key_path),
        max_entries=config.store.max_entries,
    )


class ProvisioningAgent:
    """
    Main agent that coordinates the provisioning components.

    The agent is responsible for:
    - Building the credential store and transport
    - Running the state machine behind its event pump
    - Running the peripheral status monitor when enabled
    - Handling system signals
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        transport: Optional[TransportStack] = None,
        advertising: Optional[AdvertisingController] = None,
        store: Optional[CredentialStore] = None,
    ):
        """
        Initialize the agent.

        Args:
            config: Configuration; loaded from the default locations if None.
            transport: BLE stack; built from ``config.transport`` if None.
            advertising: Advertising controller; defaults to ``transport``.
            store: Credential store; built from ``config.store`` if None.
        """
        self.config: Config = config or load_config()

        if transport is None:
            transport, advertising = load_transport(
                self.config.transport.factory, self.config.transport.options
            )
        if advertising is None:
            if not isinstance(transport, AdvertisingController):
                raise ConfigError("No advertising controller supplied")
            advertising = transport

        self.transport = transport
        self.store = store or create_store(self.config)
        self.machine = ProvisioningStateMachine(
            transport=transport,
            advertising=advertising,
            store=self.store,
            default_name=self.config.device.name,
            name_max_bytes=self.config.device.name_max_bytes,
            stop_grace_seconds=self.config.provisioning.stop_grace_seconds,
        )
        self.pump = EventPump(self.machine)
        transport.bind(self.pump.post)

        self.monitor: Optional[StatusMonitor] = None
        if self.config.peripheral.enabled:
            self.monitor = StatusMonitor(
                port=self.config.peripheral.port,
                baudrate=self.config.peripheral.baudrate,
                read_timeout=self.config.peripheral.read_timeout,
                poll_interval=self.config.peripheral.poll_interval,
            )

        self.machine.on_state_changed(self._handle_state_changed)
        self.machine.on_provisioned(self._handle_provisioned)

        self._running = False
        self._shutdown_event = asyncio.Event()

    def _handle_state_changed(self, state: ProvisioningState) -> None:
        if state == ProvisioningState.FAILED:
            logger.error(f"Provisioning failed: {self.machine.last_error}")

    def _handle_provisioned(self, ssid: str, password: str) -> None:
        logger.info(f"Device provisioned for network '{ssid}'")

    def _setup_signal_handlers(self) -> None:
        """Setup signal handlers for graceful shutdown."""
        loop = asyncio.get_running_loop()

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._shutdown_event.set)

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self, name: Optional[str] = None) -> bool:
        """
        Start the event pump, the peripheral monitor and, if configured,
        a provisioning session.

        Returns:
            False if the provisioning session could not be started; the
            agent is stopped again in that case.
        """
        if self._running:
            logger.warning("Agent already running")
            return True

        logger.info("Starting bleprov agent...")
        self._running = True
        self._shutdown_event.clear()

        await self.pump.start()

        if self.monitor and not await self.monitor.start():
            logger.warning("Peripheral monitor unavailable, continuing without it")

        if self.config.provisioning.start_on_launch:
            if not await self.pump.start_session(name or self.config.device.name):
                logger.error("Failed to start provisioning")
                await self.stop()
                return False

        logger.info("bleprov agent started")
        return True

    async def stop(self) -> None:
        """Stop provisioning and all components."""
        if not self._running:
            return

        logger.info("Stopping bleprov agent...")
        self._running = False

        await self.pump.stop_session()
        await self.pump.stop()

        if self.monitor:
            await self.monitor.stop()

        logger.info("bleprov agent stopped")

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self, name: Optional[str] = None) -> bool:
        """Start, wait for a shutdown signal, then stop."""
        self._setup_signal_handlers()
        try:
            if not await self.start(name):
                return False
            await self._shutdown_event.wait()
            return True
        finally:
            await self.stop()

    def get_status(self) -> Dict[str, Any]:
        """
        Get current agent status.

        Returns:
            Dictionary containing agent, provisioning and peripheral status.
        """
        identity = self.machine.identity
        latest = None
        try:
            record = self.store.latest()
            latest = record.ssid if record else None
        except BleprovError as e:
            logger.warning(f"Cannot read credential store: {e}")

        return {
            "running": self._running,
            "provisioning": {
                "state": self.machine.state.value,
                "device_name": identity.name if identity else None,
                "connected": self.machine.is_connected,
                "last_error": self.machine.last_error,
            },
            "saved_network": latest,
            "peripheral": (
                self.monitor.get_status().to_dict()
                if self.monitor and self.monitor.is_running else None
            ),
        }


# ----------------------------------------------------------------------
# Command line
# ----------------------------------------------------------------------

def _cmd_run(args, config: Config) -> int:
    agent = ProvisioningAgent(config)
    return 0 if asyncio.run(agent.run(args.name)) else 1


def _cmd_credentials(args, config: Config) -> int:
    store = create_store(config)

    if args.action == "clear":
        store.clear()
        print("Stored credentials cleared")
        return 0

    records = store.load()
    if not records:
        print("No stored credentials")
        return 0

    for index, record in enumerate(records):
        print(f"{index}: {record.ssid}  password=********  saved={record.provisioned_at.isoformat()}")
    return 0


async def _peripheral_read(monitor: StatusMonitor) -> int:
    if not await monitor.open():
        return 1
    try:
        status = await monitor.read_frame()
    finally:
        await monitor.stop()

    if status is None:
        print("No status frame received")
        return 1

    print(f"brake={'ON' if status.brake_on else 'OFF'} seatbelt={'ON' if status.seatbelt_on else 'OFF'}")
    return 0


async def _peripheral_send(monitor: StatusMonitor, state: ControlState) -> int:
    if not await monitor.open():
        return 1
    try:
        sent = await monitor.send_control_frame(state)
    finally:
        await monitor.stop()
    return 0 if sent else 1


def _cmd_peripheral(args, config: Config) -> int:
    monitor = StatusMonitor(
        port=args.port or config.peripheral.port,
        baudrate=config.peripheral.baudrate,
        read_timeout=config.peripheral.read_timeout,
    )

    if args.action == "read":
        return asyncio.run(_peripheral_read(monitor))

    lights = tuple(n in (args.light or []) for n in range(1, 6))
    state = ControlState(brake=args.brake, lights=lights, driver_light=args.driver_light)
    return asyncio.run(_peripheral_send(monitor, state))


def build_parser():
    import argparse

    parser = argparse.ArgumentParser(prog="bleprov", description="BLE Wi-Fi provisioning agent")
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration file",
        default=None
    )
    parser.add_argument(
        "-v", "--verbose",
        help="Enable verbose logging",
        action="store_true"
    )
    parser.add_argument(
        "--debug",
        help="Enable debug logging",
        action="store_true"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    run_parser = subparsers.add_parser("run", help="Run the provisioning agent")
    run_parser.add_argument("--name", help="Advertised device name", default=None)
    run_parser.set_defaults(handler=_cmd_run)

    cred_parser = subparsers.add_parser("credentials", help="Inspect stored credentials")
    cred_parser.add_argument("action", choices=["list", "clear"])
    cred_parser.set_defaults(handler=_cmd_credentials)

    periph_parser = subparsers.add_parser("peripheral", help="Talk to the peripheral controller")
    periph_parser.add_argument("action", choices=["read", "send"])
    periph_parser.add_argument("--port", help="Serial port", default=None)
    periph_parser.add_argument("--brake", action="store_true", help="Brake output on")
    periph_parser.add_argument(
        "--light", type=int, action="append", choices=range(1, 6),
        help="Light output to switch on (repeatable)",
    )
    periph_parser.add_argument("--driver-light", action="store_true", help="Driver light on")
    periph_parser.set_defaults(handler=_cmd_peripheral)

    return parser


def main(argv=None) -> None:
    """Main entry point for the bleprov command."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(2)

    # Setup logging
    if args.debug:
        log_level = logging.DEBUG
    elif args.verbose:
        log_level = logging.INFO
    else:
        log_level = getattr(logging, config.logging.level.upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format=config.logging.format)

    try:
        sys.exit(args.handler(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except BleprovError as e:
        logger.error(f"bleprov failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
