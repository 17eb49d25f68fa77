"""
Persistent storage for provisioned Wi-Fi credentials.

Saved networks are kept newest first. Saving an SSID that is already known
replaces its password and moves it to the front; when the list is full the
oldest network is dropped.
"""

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Optional

from bleprov.exceptions import CredentialStoreError
from bleprov.provisioning.models import ProvisioningRecord
from bleprov.security.encryption import EncryptionService, KeyFile

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10

# Binds the ciphertext to its purpose
_ASSOCIATED_DATA = b"bleprov-credentials-v1"


def _merge(records: List[ProvisioningRecord], record: ProvisioningRecord,
           max_entries: int) -> List[ProvisioningRecord]:
    merged = [record] + [r for r in records if r.ssid != record.ssid]
    return merged[:max_entries]


class CredentialStore(ABC):
    """Abstract credential store."""

    @abstractmethod
    def persist(self, record: ProvisioningRecord) -> None:
        """
        Save a record.

        Raises:
            CredentialStoreError: If the record could not be written.
        """
        pass

    @abstractmethod
    def load(self) -> List[ProvisioningRecord]:
        """Return saved records, newest first."""
        pass

    @abstractmethod
    def remove(self, ssid: str) -> bool:
        """Remove a network. Returns True if it was present."""
        pass

    @abstractmethod
    def clear(self) -> None:
        pass

    def latest(self) -> Optional[ProvisioningRecord]:
        records = self.load()
        return records[0] if records else None


class MemoryCredentialStore(CredentialStore):
    """In-memory store, used when persistence is disabled and in tests."""

    def __init__(self, max_entries: int = DEFAULT_MAX_ENTRIES):
        self._max_entries = max_entries
        self._records: List[ProvisioningRecord] = []

    def persist(self, record: ProvisioningRecord) -> None:
        self._records = _merge(self._records, record, self._max_entries)

    def load(self) -> List[ProvisioningRecord]:
        return list(self._records)

    def remove(self, ssid: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r.ssid != ssid]
        return len(self._records) != before

    def clear(self) -> None:
        self._records = []


class EncryptedFileCredentialStore(CredentialStore):
    """
    Credential store backed by an AES-256-GCM encrypted JSON file.

    The master key lives in a separate owner-only key file that is created
    on first write.
    """

    def __init__(
        self,
        path: Path,
        key_path: Optional[Path] = None,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        self._path = Path(path)
        self._key_file = KeyFile(key_path or self._path.with_suffix(".key"))
        self._max_entries = max_entries
        self._cipher: Optional[EncryptionService] = None

    @property
    def path(self) -> Path:
        return self._path

    def _get_cipher(self) -> EncryptionService:
        if self._cipher is None:
            try:
                self._cipher = EncryptionService(self._key_file.load_or_create())
            except (OSError, ValueError) as e:
                raise CredentialStoreError(f"Cannot load master key: {e}") from e
        return self._cipher

    def load(self) -> List[ProvisioningRecord]:
        if not self._path.exists():
            return []

        try:
            encrypted = self._path.read_text()
            plaintext = self._get_cipher().decrypt_from_base64(encrypted, _ASSOCIATED_DATA)
            data = json.loads(plaintext.decode('utf-8'))
            return [ProvisioningRecord.from_dict(item) for item in data.get("networks", [])]
        except CredentialStoreError:
            raise
        except (OSError, ValueError, KeyError) as e:
            raise CredentialStoreError(f"Cannot read {self._path}: {e}") from e

    def persist(self, record: ProvisioningRecord) -> None:
        records = _merge(self.load(), record, self._max_entries)
        self._write(records)
        logger.info(f"Saved credentials for SSID '{record.ssid}' ({len(records)} stored)")

    def remove(self, ssid: str) -> bool:
        records = self.load()
        remaining = [r for r in records if r.ssid != ssid]
        if len(remaining) == len(records):
            return False
        self._write(remaining)
        return True

    def clear(self) -> None:
        try:
            if self._path.exists():
                self._path.unlink()
        except OSError as e:
            raise CredentialStoreError(f"Cannot remove {self._path}: {e}") from e
        logger.info("Cleared stored credentials")

    def _write(self, records: List[ProvisioningRecord]) -> None:
        payload = json.dumps({"networks": [r.to_dict() for r in records]})
        encrypted = self._get_cipher().encrypt_to_base64(payload, _ASSOCIATED_DATA)

        try:
            self._path.parent.mkdir(mode=0o700, parents=True, exist_ok=True)
            # Write atomically
            temp_file = self._path.with_suffix(".tmp")
            temp_file.write_text(encrypted)
            temp_file.chmod(0o600)
            temp_file.replace(self._path)
        except OSError as e:
            raise CredentialStoreError(f"Cannot write {self._path}: {e}") from e
