"""
Tests for bleprov.security.encryption module.
"""

import os
import stat

import pytest

from bleprov.security.encryption import KEY_SIZE, EncryptionService, KeyFile


class TestEncryptionService:
    """Tests for EncryptionService class."""

    def test_generated_key(self):
        service = EncryptionService()
        assert len(service.key) == KEY_SIZE

    def test_invalid_key_length(self):
        with pytest.raises(ValueError):
            EncryptionService(b"short")

    def test_encrypt_decrypt(self):
        """Test string plaintext decrypts back to its bytes."""
        service = EncryptionService()
        ciphertext = service.encrypt("secret123")

        assert b"secret123" not in ciphertext
        assert service.decrypt(ciphertext) == b"secret123"

    def test_nonce_is_random(self):
        service = EncryptionService()
        assert service.encrypt(b"x") != service.encrypt(b"x")

    def test_associated_data_must_match(self):
        """Test decryption fails when associated data differs."""
        service = EncryptionService()
        ciphertext = service.encrypt(b"payload", associated_data=b"ctx-a")

        with pytest.raises(ValueError):
            service.decrypt(ciphertext, associated_data=b"ctx-b")

    def test_wrong_key(self):
        ciphertext = EncryptionService().encrypt(b"payload")
        with pytest.raises(ValueError):
            EncryptionService().decrypt(ciphertext)

    def test_tampered_ciphertext(self):
        service = EncryptionService()
        ciphertext = bytearray(service.encrypt(b"payload"))
        ciphertext[-1] ^= 0xFF

        with pytest.raises(ValueError):
            service.decrypt(bytes(ciphertext))

    def test_too_short(self):
        with pytest.raises(ValueError):
            EncryptionService().decrypt(b"\x00" * 10)

    def test_base64(self):
        service = EncryptionService()
        encoded = service.encrypt_to_base64("hello", associated_data=b"ad")

        assert isinstance(encoded, str)
        assert service.decrypt_from_base64(encoded, associated_data=b"ad") == b"hello"


class TestKeyFile:
    """Tests for KeyFile class."""

    def test_create_then_reload(self, temp_dir):
        """Test the same key is returned after creation."""
        key_file = KeyFile(temp_dir / "sub" / "master.key")
        assert not key_file.exists()

        key = key_file.load_or_create()

        assert len(key) == KEY_SIZE
        assert key_file.exists()
        assert KeyFile(temp_dir / "sub" / "master.key").load_or_create() == key

    @pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
    def test_owner_only(self, temp_dir):
        key_file = KeyFile(temp_dir / "master.key")
        key_file.load_or_create()

        assert stat.S_IMODE(key_file.path.stat().st_mode) == 0o600

    def test_corrupt_key(self, temp_dir):
        (temp_dir / "master.key").write_bytes(b"123")
        with pytest.raises(ValueError):
            KeyFile(temp_dir / "master.key").load_or_create()

    def test_delete(self, temp_dir):
        key_file = KeyFile(temp_dir / "master.key")
        key_file.load_or_create()

        key_file.delete()
        key_file.delete()

        assert not key_file.exists()
