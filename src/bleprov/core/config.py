"""
Configuration management for bleprov.

Handles loading, validation, and access to configuration settings.
"""

import logging
import os
import yaml
from dataclasses import dataclass, field
from typing import Optional, Dict, Any, List
from pathlib import Path

from bleprov.exceptions import ConfigError
from bleprov.provisioning.models import DEVICE_NAME_MAX_BYTES
from bleprov.provisioning.service import DEFAULT_DEVICE_NAME, DEFAULT_STOP_GRACE_SECONDS

logger = logging.getLogger(__name__)

# Overrides the search path when set
CONFIG_ENV_VAR = "BLEPROV_CONFIG"

# Default configuration paths
CONFIG_PATHS = [
    "/etc/bleprov/config.yaml",
    os.path.expanduser("~/.config/bleprov/config.yaml"),
    "config.yaml",
]


# Expected YAML types per setting, checked before value ranges
_FIELD_TYPES = {
    "device.name": (str,),
    "device.name_max_bytes": (int,),
    "provisioning.stop_grace_seconds": (int, float),
    "provisioning.start_on_launch": (bool,),
    "transport.factory": (str,),
    "transport.options": (dict,),
    "store.enabled": (bool,),
    "store.path": (str,),
    "store.key_path": (str,),
    "store.max_entries": (int,),
    "peripheral.enabled": (bool,),
    "peripheral.port": (str,),
    "peripheral.baudrate": (int,),
    "peripheral.read_timeout": (int, float),
    "peripheral.poll_interval": (int, float),
    "logging.level": (str,),
    "logging.format": (str,),
}


@dataclass
class DeviceConfig:
    """Advertised device identity."""
    name: str = DEFAULT_DEVICE_NAME
    name_max_bytes: int = DEVICE_NAME_MAX_BYTES


@dataclass
class ProvisioningConfig:
    """Provisioning handshake settings."""
    stop_grace_seconds: float = DEFAULT_STOP_GRACE_SECONDS
    start_on_launch: bool = True


@dataclass
class TransportConfig:
    """BLE transport backend."""
    factory: str = ""  # "package.module:callable", called with **options
    options: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StoreConfig:
    """Credential store settings."""
    enabled: bool = True
    path: str = "/var/lib/bleprov/credentials.enc"
    key_path: str = "/var/lib/bleprov/credentials.key"
    max_entries: int = 10


@dataclass
class PeripheralConfig:
    """Peripheral controller serial link."""
    enabled: bool = False
    port: str = "/dev/ttyUSB0"
    baudrate: int = 115200
    read_timeout: float = 0.1
    poll_interval: float = 0.05


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@dataclass
class Config:
    """Main configuration class."""
    version: int = 1
    device: DeviceConfig = field(default_factory=DeviceConfig)
    provisioning: ProvisioningConfig = field(default_factory=ProvisioningConfig)
    transport: TransportConfig = field(default_factory=TransportConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    peripheral: PeripheralConfig = field(default_factory=PeripheralConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        """Create Config from dictionary."""
        config = cls()

        try:
            if "version" in data:
                config.version = data["version"]

            if "device" in data:
                config.device = DeviceConfig(**data["device"])

            if "provisioning" in data:
                config.provisioning = ProvisioningConfig(**data["provisioning"])

            if "transport" in data:
                config.transport = TransportConfig(**data["transport"])

            if "store" in data:
                config.store = StoreConfig(**data["store"])

            if "peripheral" in data:
                config.peripheral = PeripheralConfig(**data["peripheral"])

            if "logging" in data:
                config.logging = LoggingConfig(**data["logging"])
        except TypeError as e:
            raise ConfigError(f"Invalid configuration section: {e}") from e

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert Config to dictionary."""
        return {
            "version": self.version,
            "device": {
                "name": self.device.name,
                "name_max_bytes": self.device.name_max_bytes,
            },
            "provisioning": {
                "stop_grace_seconds": self.provisioning.stop_grace_seconds,
                "start_on_launch": self.provisioning.start_on_launch,
            },
            "transport": {
                "factory": self.transport.factory,
                "options": dict(self.transport.options),
            },
            "store": {
                "enabled": self.store.enabled,
                "path": self.store.path,
                "key_path": self.store.key_path,
                "max_entries": self.store.max_entries,
            },
            "peripheral": {
                "enabled": self.peripheral.enabled,
                "port": self.peripheral.port,
                "baudrate": self.peripheral.baudrate,
                "read_timeout": self.peripheral.read_timeout,
                "poll_interval": self.peripheral.poll_interval,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }

    def validate(self) -> List[str]:
        """Return a list of problems; empty when the configuration is usable."""
        errors = self._type_errors()
        if errors:
            return errors

        if not self.device.name:
            errors.append("device.name must not be empty")
        if self.device.name_max_bytes <= 0:
            errors.append("device.name_max_bytes must be positive")
        if self.provisioning.stop_grace_seconds < 0:
            errors.append("provisioning.stop_grace_seconds must not be negative")
        if self.transport.factory and ":" not in self.transport.factory:
            errors.append("transport.factory must look like 'module:attribute'")
        if self.store.max_entries <= 0:
            errors.append("store.max_entries must be positive")
        if self.peripheral.baudrate <= 0:
            errors.append("peripheral.baudrate must be positive")
        if self.peripheral.read_timeout < 0 or self.peripheral.poll_interval < 0:
            errors.append("peripheral timings must not be negative")
        if self.logging.level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"logging.level '{self.logging.level}' is not a valid level")

        return errors

    def _type_errors(self) -> List[str]:
        errors = []
        for key, types in _FIELD_TYPES.items():
            section, name = key.split(".")
            value = getattr(getattr(self, section), name)
            # bool is an int subclass
            if (isinstance(value, bool) and bool not in types) or not isinstance(value, types):
                expected = " or ".join(t.__name__ for t in types)
                errors.append(f"{key} must be {expected}, got {type(value).__name__}")
        return errors

    def save(self, path: Optional[str] = None):
        """Save configuration to file."""
        if path is None:
            path = CONFIG_PATHS[0]

        # Ensure directory exists
        Path(path).parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w") as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False)


def _candidate_paths(path: Optional[str]) -> List[str]:
    if path is not None:
        return [path]
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return [env_path]
    return CONFIG_PATHS


def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from file.

    Args:
        path: Path to config file. If None, uses $BLEPROV_CONFIG or
            searches default locations.

    Returns:
        Config object with loaded or default settings.

    Raises:
        ConfigError: If a file is found but holds invalid settings.
    """
    for config_path in _candidate_paths(path):
        if not os.path.exists(config_path):
            continue

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Failed to load config from {config_path}: {e}")
            continue

        if not data:
            continue
        if not isinstance(data, dict):
            raise ConfigError(f"Invalid config {config_path}: top level must be a mapping")

        config = Config.from_dict(data)
        errors = config.validate()
        if errors:
            raise ConfigError(f"Invalid config {config_path}: {'; '.join(errors)}")

        logger.debug(f"Loaded config from {config_path}")
        return config

    # Return default config
    return Config()


def get_config_path() -> Optional[str]:
    """Get the path to the active config file."""
    for path in _candidate_paths(None):
        if os.path.exists(path):
            return path
    return None
