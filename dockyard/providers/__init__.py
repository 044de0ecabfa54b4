"""Driver registry.

Drivers are looked up by the name the orchestrator knows them under
(``amazonec2``). Only the EC2 driver ships with dockyard.
"""

from __future__ import annotations

from dockyard.constants import DRIVER_NAME
from dockyard.providers.exceptions import (
    ProviderAPIError,
    ProviderConnectionError,
    ProviderCredentialsError,
    ProviderError,
)
from dockyard.providers.aws import EC2Driver

_DRIVERS: dict[str, type[EC2Driver]] = {}


def register_driver(name: str, driver_class: type[EC2Driver]) -> None:
    """Register a driver implementation under ``name``."""
    _DRIVERS[name] = driver_class


def get_driver(name: str) -> type[EC2Driver]:
    """Get a registered driver class by name.

    Raises
    ------
    ValueError
        If no driver is registered under that name
    """
    if name not in _DRIVERS:
        raise ValueError(f"Unknown driver: {name}")
    return _DRIVERS[name]


def list_drivers() -> list[str]:
    return list(_DRIVERS.keys())


__all__ = [
    "register_driver",
    "get_driver",
    "list_drivers",
    "ProviderError",
    "ProviderCredentialsError",
    "ProviderAPIError",
    "ProviderConnectionError",
]

register_driver(DRIVER_NAME, EC2Driver)
