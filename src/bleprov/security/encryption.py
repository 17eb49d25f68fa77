"""
Encryption services for bleprov.

Provides AES-256-GCM encryption for credentials at rest and a file-backed
master key.
"""

import base64
import logging
import os
import secrets
from pathlib import Path
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

logger = logging.getLogger(__name__)

# Encryption constants
NONCE_SIZE = 12
TAG_SIZE = 16
KEY_SIZE = 32  # 256 bits


class EncryptionService:
    """
    AES-256-GCM encryption service.

    Provides authenticated encryption with associated data (AEAD).
    """

    def __init__(self, key: Optional[bytes] = None):
        """
        Initialize encryption service.

        Args:
            key: 256-bit encryption key (generated if not provided)
        """
        if key is None:
            key = secrets.token_bytes(KEY_SIZE)

        if len(key) != KEY_SIZE:
            raise ValueError(f"Key must be {KEY_SIZE} bytes")

        self._key = key

    @property
    def key(self) -> bytes:
        """Get the encryption key."""
        return self._key

    def encrypt(
        self,
        plaintext: Union[str, bytes],
        associated_data: Optional[bytes] = None,
    ) -> bytes:
        """
        Encrypt data using AES-256-GCM.

        Args:
            plaintext: Data to encrypt
            associated_data: Additional authenticated data (not encrypted)

        Returns:
            Encrypted data (nonce || ciphertext || tag)
        """
        if isinstance(plaintext, str):
            plaintext = plaintext.encode('utf-8')

        nonce = secrets.token_bytes(NONCE_SIZE)
        ciphertext = AESGCM(self._key).encrypt(nonce, plaintext, associated_data)

        return nonce + ciphertext

    def decrypt(
        self,
        ciphertext: bytes,
        associated_data: Optional[bytes] = None,
    ) -> bytes:
        """
        Decrypt data using AES-256-GCM.

        Raises:
            ValueError: If decryption fails (invalid key, corrupted data, etc.)
        """
        if len(ciphertext) < NONCE_SIZE + TAG_SIZE:
            raise ValueError("Ciphertext too short")

        nonce = ciphertext[:NONCE_SIZE]
        actual_ciphertext = ciphertext[NONCE_SIZE:]

        try:
            return AESGCM(self._key).decrypt(nonce, actual_ciphertext, associated_data)
        except InvalidTag:
            raise ValueError("Decryption failed: invalid tag or corrupted data")

    def encrypt_to_base64(
        self,
        plaintext: Union[str, bytes],
        associated_data: Optional[bytes] = None,
    ) -> str:
        """Encrypt and return base64-encoded result."""
        ciphertext = self.encrypt(plaintext, associated_data)
        return base64.b64encode(ciphertext).decode('ascii')

    def decrypt_from_base64(
        self,
        ciphertext_b64: str,
        associated_data: Optional[bytes] = None,
    ) -> bytes:
        """Decrypt base64-encoded ciphertext."""
        ciphertext = base64.b64decode(ciphertext_b64)
        return self.decrypt(ciphertext, associated_data)

    @staticmethod
    def generate_key() -> bytes:
        """Generate a random 256-bit encryption key."""
        return secrets.token_bytes(KEY_SIZE)


class KeyFile:
    """
    Master key kept in a file with owner-only permissions.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.exists()

    def load_or_create(self) -> bytes:
        """Return the stored key, generating and writing one if absent."""
        if self._path.exists():
            key = self._path.read_bytes()
            if len(key) != KEY_SIZE:
                raise ValueError(f"Key file {self._path} is corrupt")
            return key

        key = EncryptionService.generate_key()
        self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)

        # Create with restrictive permissions from the start
        fd = os.open(self._path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(key)

        logger.info(f"Generated new master key at {self._path}")
        return key

    def delete(self) -> None:
        """Overwrite with random data, then remove the key file."""
        if not self._path.exists():
            return

        with open(self._path, 'wb') as f:
            f.write(secrets.token_bytes(KEY_SIZE))
        self._path.unlink()
        logger.debug(f"Deleted key file {self._path}")
