"""
Reassembly of a credential pair delivered as two independent events.
"""

import logging
from typing import Callable, Optional

from bleprov.provisioning.models import CredentialFragment

logger = logging.getLogger(__name__)


class CredentialAssembler:
    """
    Buffers the SSID and password halves until both are present.

    Arrival order does not matter. A repeated half overwrites the pending
    value; there is only ever one pair in flight.
    """

    def __init__(self, on_complete: Optional[Callable[[str, str], None]] = None):
        self._fragment = CredentialFragment()
        self._on_complete = on_complete

    @property
    def has_pending(self) -> bool:
        return not self._fragment.is_empty

    def set_consumer(self, on_complete: Callable[[str, str], None]) -> None:
        self._on_complete = on_complete

    def set_username_fragment(self, value: str) -> None:
        if self._fragment.ssid is not None:
            logger.debug("Replacing pending SSID fragment")
        self._fragment.ssid = value
        self._emit_if_complete()

    def set_secret_fragment(self, value: str) -> None:
        if self._fragment.password is not None:
            logger.debug("Replacing pending password fragment")
        self._fragment.password = value
        self._emit_if_complete()

    def reset(self) -> None:
        if self.has_pending:
            logger.debug("Discarding partial credential fragment")
        self._fragment.clear()

    def _emit_if_complete(self) -> None:
        if not self._fragment.is_complete:
            return

        ssid, password = self._fragment.ssid, self._fragment.password
        # Cleared before emitting so the consumer sees an empty buffer.
        self._fragment.clear()

        if self._on_complete:
            self._on_complete(ssid, password)
        else:
            logger.warning("Credential pair completed with no consumer attached")
