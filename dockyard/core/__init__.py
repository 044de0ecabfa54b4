"""Core dockyard functionality."""

from __future__ import annotations

from dockyard.core.interfaces import ProviderGateway, RemoteCommandRunner

__all__ = [
    "ProviderGateway",
    "RemoteCommandRunner",
]
