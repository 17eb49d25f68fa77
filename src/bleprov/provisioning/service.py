"""
Provisioning state machine.

Takes the device from discoverable to holding Wi-Fi credentials over the
BLE control channel, and re-enters advertising after a peer drops.
"""

import logging
import time
from typing import Callable, Optional

from bleprov.exceptions import (
    MalformedFragmentError,
    TransportInitError,
    TransportRuntimeError,
)
from bleprov.provisioning.assembler import CredentialAssembler
from bleprov.provisioning.models import (
    DEVICE_NAME_MAX_BYTES,
    PASSWORD_MAX_BYTES,
    SSID_MAX_BYTES,
    ConnectionContext,
    ConnectivityReport,
    DeviceIdentity,
    ProvisioningRecord,
    ProvisioningState,
    StationStatus,
    WifiMode,
)
from bleprov.provisioning.observers import NotificationKind, ObserverRegistry
from bleprov.provisioning.store import CredentialStore
from bleprov.provisioning.transport import (
    AdvertisingController,
    TransportEventHandler,
    TransportStack,
)

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_NAME = "bleprov-device"
DEFAULT_STOP_GRACE_SECONDS = 0.1


class ProvisioningStateMachine(TransportEventHandler):
    """
    Single authority over the provisioning state.

    Not thread-safe: events and ``start``/``stop`` calls must come from one
    logical consumer (see ``EventPump``). Every state change is reported to
    the state-change observer exactly once, before the triggering call
    returns.
    """

    def __init__(
        self,
        transport: TransportStack,
        advertising: AdvertisingController,
        store: Optional[CredentialStore] = None,
        default_name: str = DEFAULT_DEVICE_NAME,
        name_max_bytes: int = DEVICE_NAME_MAX_BYTES,
        stop_grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS,
        connectivity_probe: Optional[Callable[[], bool]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self._transport = transport
        self._advertising = advertising
        self._store = store
        self._default_name = default_name
        self._name_max_bytes = name_max_bytes
        self._stop_grace_seconds = stop_grace_seconds
        self._connectivity_probe = connectivity_probe
        self._sleep = sleep

        self._state = ProvisioningState.IDLE
        self._identity: Optional[DeviceIdentity] = None
        self._context: Optional[ConnectionContext] = None
        self._last_record: Optional[ProvisioningRecord] = None
        self._last_error: Optional[str] = None

        self._assembler = CredentialAssembler(self._handle_credentials)
        self._observers = ObserverRegistry()

    @property
    def state(self) -> ProvisioningState:
        return self._state

    def get_state(self) -> ProvisioningState:
        return self._state

    @property
    def identity(self) -> Optional[DeviceIdentity]:
        return self._identity

    @property
    def is_connected(self) -> bool:
        return self._context is not None

    @property
    def has_pending_credentials(self) -> bool:
        return self._assembler.has_pending

    @property
    def last_error(self) -> Optional[str]:
        return self._last_error

    def on_provisioned(self, callback: Optional[Callable[[str, str], None]]) -> None:
        """Register callback for provisioning success. Replaces any previous one."""
        self._observers.register(NotificationKind.PROVISIONED, callback)

    def on_state_changed(self, callback: Optional[Callable[[ProvisioningState], None]]) -> None:
        """Register callback for state changes. Replaces any previous one."""
        self._observers.register(NotificationKind.STATE_CHANGED, callback)

    # ------------------------------------------------------------------
    # Control operations
    # ------------------------------------------------------------------

    def start(self, name: Optional[str] = None) -> bool:
        """
        Bring up the transport and start advertising.

        If a session is already active it is stopped first, then the call
        blocks for the stop grace period so the stack can quiesce.

        Args:
            name: Advertised device name. Falls back to the configured
                default. Truncated to the byte limit.

        Returns:
            False if the transport failed to initialize (state stays IDLE),
            True otherwise.
        """
        logger.info("Starting provisioning...")

        if self._state != ProvisioningState.IDLE:
            logger.warning(f"Provisioning active in state {self._state.value}, stopping first")
            self.stop()
            if self._stop_grace_seconds > 0:
                self._sleep(self._stop_grace_seconds)

        requested = name or self._default_name
        identity = DeviceIdentity.from_name(requested, self._name_max_bytes)
        if len(identity) < len(requested.encode("utf-8")):
            logger.info(f"Device name truncated to: {identity.name}")
        logger.info(f"Using device name: {identity.name}")

        try:
            self._transport.initialize(identity)
        except TransportInitError as e:
            logger.error(f"Failed to initialize transport: {e}")
            self._shutdown_transport()
            return False
        except Exception as e:
            logger.error(f"Unexpected transport initialization error: {e}")
            self._shutdown_transport()
            return False

        self._identity = identity
        self._last_error = None
        self._set_state(ProvisioningState.ADVERTISING)
        self._request_advertising(start=True)

        logger.info("Provisioning started")
        return True

    def stop(self) -> None:
        """Tear the session down and return to IDLE. No-op when IDLE."""
        if self._state == ProvisioningState.IDLE:
            return

        logger.info("Stopping provisioning...")

        try:
            self._advertising.request_stop()
        except Exception as e:
            logger.warning(f"Advertising stop failed during teardown: {e}")
        self._shutdown_transport()

        self._context = None
        self._assembler.reset()
        self._identity = None
        self._last_record = None
        self._last_error = None
        self._set_state(ProvisioningState.IDLE)

        logger.info("Provisioning stopped")

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def on_connection_opened(self, context: ConnectionContext) -> None:
        if self._state != ProvisioningState.ADVERTISING:
            logger.warning(
                f"Ignoring connection {context.conn_id} in state {self._state.value}"
            )
            return

        logger.info(f"Peer connected (conn_id={context.conn_id})")
        self._context = context
        self._set_state(ProvisioningState.CONNECTED)
        self._request_advertising(start=False)

    def on_connection_closed(self, reason: Optional[int] = None) -> None:
        if self._state not in (ProvisioningState.CONNECTED, ProvisioningState.PROVISIONED):
            logger.debug(f"Ignoring disconnect in state {self._state.value}")
            return

        logger.info(f"Peer disconnected (reason={reason})")
        self._context = None
        self._assembler.reset()
        self._set_state(ProvisioningState.ADVERTISING)
        self._request_advertising(start=True)

    def on_username_fragment(self, data: bytes) -> None:
        value = self._accept_fragment("ssid", data, SSID_MAX_BYTES)
        if value is not None:
            logger.info(f"Received SSID: {value}")
            self._assembler.set_username_fragment(value)

    def on_secret_fragment(self, data: bytes) -> None:
        value = self._accept_fragment("password", data, PASSWORD_MAX_BYTES)
        if value is not None:
            logger.info(f"Received password ({len(data)} bytes)")
            self._assembler.set_secret_fragment(value)

    def on_status_query(self) -> None:
        report = self.build_connectivity_report()
        try:
            self._transport.send_connectivity_report(report)
        except Exception as e:
            logger.error(f"Failed to send connectivity report: {e}")

    def on_generic_payload(self, data: bytes) -> None:
        logger.info(f"Received custom data: {len(data)} bytes")
        if data:
            logger.debug(f"Custom data: {bytes(data).hex(' ')}")

    def on_error(self, code: int) -> None:
        logger.error(f"Transport reported error, code {code}")
        self._fail(f"transport error {code}")

    def on_advertising_started(self, success: bool) -> None:
        if success:
            logger.info("Advertising start success")
        else:
            logger.error("Advertising start failed")

    def on_advertising_stopped(self, success: bool) -> None:
        if success:
            logger.info("Advertising stop success")
        else:
            logger.error("Advertising stop failed")

    def build_connectivity_report(self) -> ConnectivityReport:
        """Describe station connectivity for a status query."""
        status = StationStatus.SUCCESS
        if self._connectivity_probe is not None:
            try:
                if not self._connectivity_probe():
                    status = StationStatus.FAIL
            except Exception as e:
                logger.warning(f"Connectivity probe failed: {e}")
                status = StationStatus.FAIL

        ssid = self._last_record.ssid if self._last_record else None
        return ConnectivityReport(mode=WifiMode.STATION, status=status, ssid=ssid)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _accept_fragment(self, field: str, data: bytes, max_bytes: int) -> Optional[str]:
        if self._state != ProvisioningState.CONNECTED:
            logger.warning(f"Dropping {field} fragment received in state {self._state.value}")
            return None

        try:
            return self._decode_fragment(field, data, max_bytes)
        except MalformedFragmentError as e:
            logger.warning(f"Dropping {e}")
            return None

    @staticmethod
    def _decode_fragment(field: str, data: bytes, max_bytes: int) -> str:
        if not data:
            raise MalformedFragmentError(field, "empty payload")
        if len(data) > max_bytes:
            raise MalformedFragmentError(field, f"{len(data)} bytes exceeds {max_bytes}")
        try:
            return bytes(data).decode("utf-8")
        except UnicodeDecodeError:
            raise MalformedFragmentError(field, "not valid UTF-8")

    def _handle_credentials(self, ssid: str, password: str) -> None:
        """Consumer step for a completed credential pair."""
        self._set_state(ProvisioningState.PROVISIONING)

        record = ProvisioningRecord(ssid=ssid, password=password)
        self._persist(record)
        self._last_record = record

        self._observers.notify_provisioned(record)
        self._set_state(ProvisioningState.PROVISIONED)

    def _persist(self, record: ProvisioningRecord) -> None:
        if self._store is None:
            logger.debug("No credential store configured, skipping persist")
            return

        try:
            self._store.persist(record)
        except Exception as e:
            logger.error(f"Failed to persist credentials for '{record.ssid}': {e}")

    def _request_advertising(self, start: bool) -> None:
        action = "start" if start else "stop"
        try:
            if start:
                self._advertising.request_start()
            else:
                self._advertising.request_stop()
        except TransportRuntimeError as e:
            code = f" (code {e.code})" if e.code is not None else ""
            logger.error(f"Advertising {action} request failed{code}: {e}")
            self._fail(f"advertising {action} failed: {e}")
        except Exception as e:
            logger.error(f"Unexpected advertising {action} error: {e}")
            self._fail(f"advertising {action} failed: {e}")

    def _fail(self, reason: str) -> None:
        if self._state in (ProvisioningState.IDLE, ProvisioningState.FAILED):
            logger.debug(f"Ignoring failure in state {self._state.value}: {reason}")
            return

        self._last_error = reason
        self._context = None
        self._assembler.reset()
        self._set_state(ProvisioningState.FAILED)

        try:
            self._advertising.request_stop()
        except Exception as e:
            logger.warning(f"Advertising stop failed after error: {e}")

    def _shutdown_transport(self) -> None:
        try:
            self._transport.shutdown()
        except Exception as e:
            logger.warning(f"Transport shutdown failed: {e}")

    def _set_state(self, state: ProvisioningState) -> None:
        """Update provisioning state and notify the observer."""
        if state == self._state:
            return

        old_state = self._state
        self._state = state
        logger.info(f"Provisioning state: {old_state.value} -> {state.value}")

        self._observers.notify_state_changed(state)
