"""
Single-slot observer registry for provisioning notifications.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional

from bleprov.provisioning.models import ProvisioningRecord, ProvisioningState

logger = logging.getLogger(__name__)


class NotificationKind(Enum):
    """Notification kinds with one subscriber slot each."""
    STATE_CHANGED = "state_changed"
    PROVISIONED = "provisioned"


class ObserverRegistry:
    """
    Holds at most one callback per notification kind.

    Registering replaces any previous callback. Delivery is synchronous in
    the caller's context; callbacks must not block or re-enter
    ``start``/``stop`` of the machine that is notifying them.
    """

    def __init__(self):
        self._slots: Dict[NotificationKind, Optional[Callable[..., Any]]] = {
            kind: None for kind in NotificationKind
        }

    def register(self, kind: NotificationKind, callback: Optional[Callable[..., Any]]) -> None:
        """Register a callback for a kind, replacing any previous one."""
        self._slots[kind] = callback

    def clear(self, kind: NotificationKind) -> None:
        self._slots[kind] = None

    def get(self, kind: NotificationKind) -> Optional[Callable[..., Any]]:
        return self._slots[kind]

    def notify_state_changed(self, state: ProvisioningState) -> None:
        self._deliver(NotificationKind.STATE_CHANGED, state)

    def notify_provisioned(self, record: ProvisioningRecord) -> None:
        self._deliver(NotificationKind.PROVISIONED, record.ssid, record.password)

    def _deliver(self, kind: NotificationKind, *args) -> None:
        callback = self._slots[kind]
        if callback is None:
            return

        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Observer error for {kind.value}: {e}")
