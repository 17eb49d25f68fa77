"""
Exceptions raised by bleprov components.
"""

from typing import Optional


class BleprovError(Exception):
    """Base class for all bleprov errors."""


class ConfigError(BleprovError):
    """Raised when a configuration value is invalid."""


class TransportInitError(BleprovError):
    """
    Raised by a transport stack that cannot be brought up.

    The state machine turns this into a ``False`` result from ``start()``.
    """


class TransportRuntimeError(BleprovError):
    """
    Raised (or reported) when the transport fails mid-session.

    Drives the state machine into ``FAILED``; never propagates back into
    the event source.
    """

    def __init__(self, message: str, code: Optional[int] = None):
        super().__init__(message)
        self.code = code


class MalformedFragmentError(BleprovError):
    """Raised when a credential fragment payload cannot be used."""

    def __init__(self, field: str, reason: str):
        super().__init__(f"malformed {field} fragment: {reason}")
        self.field = field
        self.reason = reason


class CredentialStoreError(BleprovError):
    """Raised when the credential store cannot read or write its data."""


class FrameError(BleprovError):
    """Raised when a peripheral frame does not match the expected layout."""
