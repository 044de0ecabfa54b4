"""Amazon EC2 driver implementation."""

from __future__ import annotations

from dockyard.providers.aws.compute import EC2Driver
from dockyard.providers.aws.gateway import EC2Gateway
from dockyard.providers.aws.keypair import KeyPairManager
from dockyard.providers.aws.network import NetworkManager

__all__ = [
    "EC2Driver",
    "EC2Gateway",
    "KeyPairManager",
    "NetworkManager",
]
