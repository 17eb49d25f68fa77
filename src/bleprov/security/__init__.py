"""
Security module for bleprov.

Provides encryption of credentials at rest.
"""

from bleprov.security.encryption import EncryptionService, KeyFile

__all__ = [
    "EncryptionService",
    "KeyFile",
]
