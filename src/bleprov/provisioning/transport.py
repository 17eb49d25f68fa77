"""
Boundary between the provisioning core and the BLE transport stack.

The transport glue (vendor callbacks, GATT plumbing) depends on
``TransportEventHandler`` and calls into it; the core depends on
``TransportStack`` and ``AdvertisingController`` to issue commands back.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from bleprov.provisioning.models import ConnectionContext, ConnectivityReport, DeviceIdentity


class TransportStack(ABC):
    """Lifecycle of the underlying BLE stack."""

    def bind(self, post: Callable[["TransportEvent"], bool]) -> None:
        """
        Receive the function the stack should call to deliver events.

        Stacks that deliver events some other way can ignore this.
        """
        pass

    @abstractmethod
    def initialize(self, identity: DeviceIdentity) -> None:
        """
        Bring the stack up and register the device name.

        Raises:
            TransportInitError: If any part of the stack fails to come up.
        """
        pass

    @abstractmethod
    def shutdown(self) -> None:
        """Tear the stack down. Must tolerate being called when already down."""
        pass

    @abstractmethod
    def send_connectivity_report(self, report: ConnectivityReport) -> None:
        """Reply to the peer's status query."""
        pass


class AdvertisingController(ABC):
    """Fire-and-forget discoverability commands."""

    @abstractmethod
    def request_start(self) -> None:
        pass

    @abstractmethod
    def request_stop(self) -> None:
        pass


class TransportEventHandler(ABC):
    """Capability the transport event source delivers events to."""

    @abstractmethod
    def on_connection_opened(self, context: ConnectionContext) -> None:
        pass

    @abstractmethod
    def on_connection_closed(self, reason: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def on_username_fragment(self, data: bytes) -> None:
        pass

    @abstractmethod
    def on_secret_fragment(self, data: bytes) -> None:
        pass

    @abstractmethod
    def on_status_query(self) -> None:
        pass

    @abstractmethod
    def on_generic_payload(self, data: bytes) -> None:
        pass

    @abstractmethod
    def on_error(self, code: int) -> None:
        pass

    def on_advertising_started(self, success: bool) -> None:
        """Advertising start completion. Observational only."""
        pass

    def on_advertising_stopped(self, success: bool) -> None:
        """Advertising stop completion. Observational only."""
        pass


class TransportEvent:
    """Base for queued transport events."""

    def dispatch(self, handler: TransportEventHandler) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class ConnectionOpened(TransportEvent):
    context: ConnectionContext

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_connection_opened(self.context)


@dataclass(frozen=True)
class ConnectionClosed(TransportEvent):
    reason: Optional[int] = None

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_connection_closed(self.reason)


@dataclass(frozen=True)
class UsernameFragmentReceived(TransportEvent):
    data: bytes

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_username_fragment(self.data)


@dataclass(frozen=True)
class SecretFragmentReceived(TransportEvent):
    data: bytes

    def __repr__(self) -> str:
        return f"SecretFragmentReceived(<{len(self.data)} bytes>)"

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_secret_fragment(self.data)


@dataclass(frozen=True)
class StatusQuery(TransportEvent):

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_status_query()


@dataclass(frozen=True)
class GenericPayloadReceived(TransportEvent):
    data: bytes

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_generic_payload(self.data)


@dataclass(frozen=True)
class ErrorReported(TransportEvent):
    code: int

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_error(self.code)


@dataclass(frozen=True)
class AdvertisingStarted(TransportEvent):
    success: bool = True

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_advertising_started(self.success)


@dataclass(frozen=True)
class AdvertisingStopped(TransportEvent):
    success: bool = True

    def dispatch(self, handler: TransportEventHandler) -> None:
        handler.on_advertising_stopped(self.success)
