"""
Core bleprov components.

This module contains the agent and configuration management.
"""

from bleprov.core.agent import ProvisioningAgent
from bleprov.core.config import Config, load_config

__all__ = [
    "ProvisioningAgent",
    "Config",
    "load_config",
]
