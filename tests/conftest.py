"""
Pytest configuration and shared fixtures for bleprov tests.
"""

import os
import sys
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from bleprov.provisioning.service import ProvisioningStateMachine  # noqa: E402
from bleprov.provisioning.store import MemoryCredentialStore  # noqa: E402
from bleprov.provisioning.transport import (  # noqa: E402
    AdvertisingController,
    TransportStack,
)


# ============================================================================
# Temporary Directory Fixtures
# ============================================================================

@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def temp_config_file(temp_dir: Path) -> Path:
    """Create a temporary config file."""
    config_path = temp_dir / "config.yaml"
    config_path.write_text("""
version: 1
device:
  name: Test-Device
provisioning:
  stop_grace_seconds: 0
store:
  path: {store}
  key_path: {key}
peripheral:
  enabled: false
  port: /dev/ttyTEST0
""".format(store=temp_dir / "creds.enc", key=temp_dir / "creds.key"))
    return config_path


# ============================================================================
# Mock Transport Fixtures
# ============================================================================

@pytest.fixture
def mock_transport():
    """Mock BLE transport stack."""
    return MagicMock(spec=TransportStack)


@pytest.fixture
def mock_advertising():
    """Mock advertising controller."""
    return MagicMock(spec=AdvertisingController)


@pytest.fixture
def memory_store():
    """In-memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture
def mock_sleep():
    """Stand-in for the blocking grace delay."""
    return MagicMock()


@pytest.fixture
def machine(mock_transport, mock_advertising, memory_store, mock_sleep):
    """State machine wired to mocks, with state and provisioning recorders."""
    sm = ProvisioningStateMachine(
        transport=mock_transport,
        advertising=mock_advertising,
        store=memory_store,
        default_name="Default-Device",
        stop_grace_seconds=0.1,
        sleep=mock_sleep,
    )
    sm.states = []
    sm.provisioned = []
    sm.on_state_changed(sm.states.append)
    sm.on_provisioned(lambda ssid, password: sm.provisioned.append((ssid, password)))
    return sm


# ============================================================================
# Configuration Fixtures
# ============================================================================

@pytest.fixture
def sample_config():
    """Return a sample configuration dictionary."""
    return {
        "version": 1,
        "device": {
            "name": "Kitchen-Sensor",
            "name_max_bytes": 29,
        },
        "provisioning": {
            "stop_grace_seconds": 0.25,
            "start_on_launch": True,
        },
        "transport": {
            "factory": "vendor.ble:create_transport",
            "options": {"adapter": "hci0"},
        },
        "store": {
            "enabled": True,
            "path": "/tmp/bleprov/creds.enc",
            "key_path": "/tmp/bleprov/creds.key",
            "max_entries": 5,
        },
        "peripheral": {
            "enabled": True,
            "port": "/dev/ttyS1",
            "baudrate": 115200,
        },
        "logging": {
            "level": "DEBUG",
        },
    }


# ============================================================================
# Clean Environment Fixture
# ============================================================================

@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Ensure clean environment for each test."""
    # Remove any bleprov-specific env vars that might interfere
    for key in list(os.environ.keys()):
        if key.startswith("BLEPROV_"):
            monkeypatch.delenv(key, raising=False)
